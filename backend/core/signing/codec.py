"""
Signature Bundle Codec

Packs a SignatureBundle into the single string stored with each record and
carried verbatim inside export payloads:

    base64( utf8( json({"signature", "publicKey", "algorithm",
                        "curve" | "keySize", "hashAlgorithm"}) ) )
"""

import base64
import binascii
import json
from typing import Any, Dict, Optional

from backend.core.signing.algorithms import ECDSA_TAG, RSA_TAG
from backend.core.signing.errors import MalformedSignatureError
from backend.core.signing.models import SignatureBundle


REQUIRED_FIELDS = ("signature", "publicKey", "algorithm", "hashAlgorithm")


class SignatureCodec:
    """Encodes and decodes signature bundles."""

    def encode(self, bundle: SignatureBundle) -> str:
        payload = json.dumps(bundle.to_dict(), separators=(",", ":"), ensure_ascii=False)
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")

    def decode(self, encoded: str) -> SignatureBundle:
        """
        Decode a stored signature string.

        Raises:
            MalformedSignatureError: Bad base64, bad JSON, or missing/invalid fields
        """
        if not isinstance(encoded, str) or not encoded:
            raise MalformedSignatureError("Encoded signature must be a non-empty string")

        try:
            raw = base64.b64decode(encoded.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise MalformedSignatureError(f"Invalid base64 signature bundle: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedSignatureError(f"Invalid JSON in signature bundle: {e}") from e

        return self.from_dict(data)

    def from_dict(self, data: Any) -> SignatureBundle:
        """Build a bundle from its JSON object form."""
        if not isinstance(data, dict):
            raise MalformedSignatureError("Signature bundle must be a JSON object")

        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise MalformedSignatureError(f"Signature bundle missing fields: {', '.join(missing)}")

        for name in REQUIRED_FIELDS:
            if not isinstance(data[name], str):
                raise MalformedSignatureError(f"Signature bundle field '{name}' must be a string")

        curve = _optional_curve(data)
        key_size = _optional_key_size(data)

        algorithm = data["algorithm"]
        if algorithm == ECDSA_TAG and curve is None:
            raise MalformedSignatureError("ECDSA signature bundle missing 'curve'")
        if algorithm == RSA_TAG and key_size is None:
            raise MalformedSignatureError("RSA-SHA384 signature bundle missing 'keySize'")

        return SignatureBundle(
            signature=data["signature"],
            public_key=data["publicKey"],
            algorithm=algorithm,
            curve=curve,
            key_size=key_size,
            hash_algorithm=data["hashAlgorithm"],
        )


def _optional_curve(data: Dict[str, Any]) -> Optional[str]:
    curve = data.get("curve")
    if curve is not None and not isinstance(curve, str):
        raise MalformedSignatureError("Signature bundle field 'curve' must be a string")
    return curve


def _optional_key_size(data: Dict[str, Any]) -> Optional[int]:
    # keySize may arrive as a JSON number or a numeric string
    key_size = data.get("keySize")
    if key_size is None:
        return None
    if isinstance(key_size, bool):
        raise MalformedSignatureError("Signature bundle field 'keySize' must be a number")
    if isinstance(key_size, int):
        return key_size
    if isinstance(key_size, str) and key_size.isdigit():
        return int(key_size)
    raise MalformedSignatureError("Signature bundle field 'keySize' must be a number")
