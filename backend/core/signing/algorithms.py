"""
Signature Algorithm Variants

Each supported signature scheme is a small variant class identified by the
`algorithm` tag carried in every signature bundle. Adding a scheme means adding
one class here and registering it in ALGORITHMS; the bundle shape stays the same.

Supported variants:
    ECDSA       curve parameter, signature = lowercase hex of the DER encoding
    RSA-SHA384  keySize parameter, signature = standard base64 (PKCS#1 v1.5)

Both variants hash the signed bytes with SHA-384 inside the primitive.
"""

import base64
import binascii
from typing import Dict, Optional, Tuple, Type

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from backend.core.signing.errors import UnsupportedAlgorithmError


HASH_ALGORITHM = "SHA-384"

ECDSA_TAG = "ECDSA"
RSA_TAG = "RSA-SHA384"

SUPPORTED_CURVES: Dict[str, Type[ec.EllipticCurve]] = {
    "secp256k1": ec.SECP256K1,
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
}

RSA_KEY_SIZES = (2048, 3072, 4096)


class SignatureAlgorithm:
    """Interface shared by all signature variants."""

    tag: str = ""

    def generate_private_key(self):
        raise NotImplementedError

    def sign(self, private_key, data: bytes) -> str:
        """Sign *data* and return the variant's text encoding of the signature."""
        raise NotImplementedError

    def decode_signature(self, signature: str) -> bytes:
        """Turn the text encoding back into raw signature bytes (ValueError if malformed)."""
        raise NotImplementedError

    def verify(self, public_key, signature: bytes, data: bytes) -> None:
        """Raise cryptography.exceptions.InvalidSignature on mismatch."""
        raise NotImplementedError

    def accepts_public_key(self, public_key) -> bool:
        raise NotImplementedError

    def bundle_parameters(self) -> Tuple[Optional[str], Optional[int]]:
        """Return the (curve, key_size) pair stored in a bundle for this variant."""
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.bundle_parameters() == other.bundle_parameters()

    def __repr__(self) -> str:
        curve, key_size = self.bundle_parameters()
        return f"{type(self).__name__}(curve={curve!r}, key_size={key_size!r})"


class EcdsaAlgorithm(SignatureAlgorithm):
    """ECDSA over a named curve with SHA-384."""

    tag = ECDSA_TAG

    def __init__(self, curve: str = "secp256k1"):
        if curve not in SUPPORTED_CURVES:
            raise UnsupportedAlgorithmError(f"Unsupported ECDSA curve: {curve!r}")
        self.curve = curve

    def generate_private_key(self) -> ec.EllipticCurvePrivateKey:
        return ec.generate_private_key(SUPPORTED_CURVES[self.curve]())

    def sign(self, private_key: ec.EllipticCurvePrivateKey, data: bytes) -> str:
        der = private_key.sign(data, ec.ECDSA(hashes.SHA384()))
        return der.hex()

    def decode_signature(self, signature: str) -> bytes:
        raw = bytes.fromhex(signature)
        # Only the lowercase hex written by sign() is accepted
        if raw.hex() != signature:
            raise ValueError("Signature is not lowercase hex")
        return raw

    def verify(self, public_key: ec.EllipticCurvePublicKey, signature: bytes, data: bytes) -> None:
        public_key.verify(signature, data, ec.ECDSA(hashes.SHA384()))

    def accepts_public_key(self, public_key) -> bool:
        return isinstance(public_key, ec.EllipticCurvePublicKey) and public_key.curve.name == self.curve

    def bundle_parameters(self) -> Tuple[Optional[str], Optional[int]]:
        return self.curve, None


class RsaAlgorithm(SignatureAlgorithm):
    """RSASSA-PKCS1-v1_5 with SHA-384."""

    tag = RSA_TAG

    def __init__(self, key_size: int = 2048):
        if not isinstance(key_size, int) or isinstance(key_size, bool) or key_size < 2048:
            raise UnsupportedAlgorithmError(f"Unsupported RSA key size: {key_size!r}")
        self.key_size = key_size

    def generate_private_key(self) -> rsa.RSAPrivateKey:
        if self.key_size not in RSA_KEY_SIZES:
            raise UnsupportedAlgorithmError(
                f"Refusing to generate RSA key of size {self.key_size} (allowed: {RSA_KEY_SIZES})"
            )
        return rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)

    def sign(self, private_key: rsa.RSAPrivateKey, data: bytes) -> str:
        raw = private_key.sign(data, padding.PKCS1v15(), hashes.SHA384())
        return base64.b64encode(raw).decode("ascii")

    def decode_signature(self, signature: str) -> bytes:
        try:
            raw = base64.b64decode(signature.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise ValueError(f"Invalid base64 signature: {e}") from e
        if base64.b64encode(raw).decode("ascii") != signature:
            raise ValueError("Signature is not canonical base64")
        return raw

    def verify(self, public_key: rsa.RSAPublicKey, signature: bytes, data: bytes) -> None:
        public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA384())

    def accepts_public_key(self, public_key) -> bool:
        return isinstance(public_key, rsa.RSAPublicKey) and public_key.key_size == self.key_size

    def bundle_parameters(self) -> Tuple[Optional[str], Optional[int]]:
        return None, self.key_size


ALGORITHMS: Dict[str, Type[SignatureAlgorithm]] = {
    ECDSA_TAG: EcdsaAlgorithm,
    RSA_TAG: RsaAlgorithm,
}


def get_algorithm(tag: str, curve: Optional[str] = None, key_size: Optional[int] = None) -> SignatureAlgorithm:
    """
    Build the variant for an algorithm tag and its parameter.

    Args:
        tag: Algorithm tag ("ECDSA" or "RSA-SHA384")
        curve: Curve name (ECDSA only)
        key_size: Modulus size in bits (RSA only)

    Returns:
        SignatureAlgorithm instance

    Raises:
        UnsupportedAlgorithmError: Unknown tag or missing/unsupported parameter
    """
    if tag == ECDSA_TAG:
        if curve is None:
            raise UnsupportedAlgorithmError("ECDSA requires a curve parameter")
        return EcdsaAlgorithm(curve)
    if tag == RSA_TAG:
        if key_size is None:
            raise UnsupportedAlgorithmError("RSA-SHA384 requires a keySize parameter")
        return RsaAlgorithm(key_size)
    raise UnsupportedAlgorithmError(f"Unsupported signature algorithm: {tag!r}")


def algorithm_for_key(key) -> SignatureAlgorithm:
    """
    Infer the variant from a private or public key object.

    Raises:
        UnsupportedAlgorithmError: Key type or curve has no registered variant
    """
    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        return EcdsaAlgorithm(key.curve.name)
    if isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        return RsaAlgorithm(key.key_size)
    raise UnsupportedAlgorithmError(f"Unsupported key type: {type(key).__name__}")
