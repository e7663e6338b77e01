"""
Signing data models.

SignatureBundle is the self-describing envelope stored with every signed record:
it carries the signature, the signer's public key and the algorithm metadata, so
it can be verified without asking the server for anything.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.core.signing.algorithms import HASH_ALGORITHM, SignatureAlgorithm, get_algorithm


@dataclass(frozen=True)
class SignatureBundle:
    """
    Immutable signature envelope.

    Attributes:
        signature: Algorithm-specific text encoding of the signature bytes
        public_key: PEM (SubjectPublicKeyInfo) of the signing key's public half
        algorithm: Algorithm tag ("ECDSA", "RSA-SHA384")
        curve: Curve name for ECDSA bundles, otherwise None
        key_size: Modulus size for RSA bundles, otherwise None
        hash_algorithm: Always "SHA-384"
    """
    signature: str
    public_key: str
    algorithm: str
    curve: Optional[str] = None
    key_size: Optional[int] = None
    hash_algorithm: str = HASH_ALGORITHM

    def resolve_algorithm(self) -> SignatureAlgorithm:
        """Return the variant named by this bundle (UnsupportedAlgorithmError if unknown)."""
        return get_algorithm(self.algorithm, curve=self.curve, key_size=self.key_size)

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape: curve or keySize, whichever the algorithm uses."""
        data: Dict[str, Any] = {
            "signature": self.signature,
            "publicKey": self.public_key,
            "algorithm": self.algorithm,
        }
        if self.curve is not None:
            data["curve"] = self.curve
        if self.key_size is not None:
            data["keySize"] = self.key_size
        data["hashAlgorithm"] = self.hash_algorithm
        return data


@dataclass(frozen=True)
class SignedEmail:
    """Result of HashSigner.sign_email()."""
    email: str
    email_hash: str
    signature: SignatureBundle
    timestamp: str


@dataclass(frozen=True)
class SignatureFields:
    """What the persistence layer stores alongside a record after signing."""
    email_hash: str
    signature_encoded: str
