"""
Signature Verification

Independently re-checks a record's signature bundle. Needs nothing but the email
and the bundle: the public key travels inside the bundle, so verification works
anywhere an exported record ends up, without contacting the server key store.

Verification steps:
    1. email_hash = hex(SHA-384(utf8(email)))
    2. resolve the algorithm variant named by the bundle
    3. parse the bundle's public key and check it fits the variant
    4. decode the signature text and verify it over utf8(email_hash)

A mismatch is a result, never an exception. Structural problems (bad key PEM,
undecodable signature) are reported the same way, with their own reason.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from cryptography.exceptions import InvalidSignature

from backend.core.signing.algorithms import HASH_ALGORITHM
from backend.core.signing.errors import InvalidInputError, UnsupportedAlgorithmError
from backend.core.signing.keys import pem_to_public_key
from backend.core.signing.models import SignatureBundle
from backend.core.signing.signer import sha384_hex

if TYPE_CHECKING:
    from backend.core.export.records import SignedRecord

logger = logging.getLogger(__name__)


class VerificationFailure(Enum):
    """Enumeration of possible verification failures."""
    INVALID_INPUT = "invalid_input"
    MISSING_SIGNATURE = "missing_signature"
    MALFORMED_BUNDLE = "malformed_bundle"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    UNSUPPORTED_HASH = "unsupported_hash"
    MALFORMED_PUBLIC_KEY = "malformed_public_key"
    KEY_ALGORITHM_MISMATCH = "key_algorithm_mismatch"
    MALFORMED_SIGNATURE = "malformed_signature"
    SIGNATURE_MISMATCH = "signature_mismatch"
    HASH_MISMATCH = "hash_mismatch"


@dataclass
class VerificationResult:
    """
    Result of signature verification.

    Attributes:
        valid: Whether the signature verified
        reason: Failure kind if verification failed
        message: Human-readable detail
        email_hash: Re-derived email hash (if the email was usable)
    """
    valid: bool
    reason: Optional[VerificationFailure] = None
    message: Optional[str] = None
    email_hash: Optional[str] = None

    @classmethod
    def ok(cls, email_hash: str) -> "VerificationResult":
        return cls(valid=True, email_hash=email_hash)

    @classmethod
    def fail(
        cls,
        reason: VerificationFailure,
        message: str,
        email_hash: Optional[str] = None,
    ) -> "VerificationResult":
        return cls(valid=False, reason=reason, message=message, email_hash=email_hash)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "emailHash": self.email_hash,
        }


class Verifier:
    """Stateless signature bundle verifier."""

    def verify(self, email: str, bundle: SignatureBundle) -> bool:
        """True only if *bundle* is a valid signature over hash(email)."""
        return self.check(email, bundle).valid

    def check(self, email: str, bundle: SignatureBundle) -> VerificationResult:
        """
        Verify a bundle against an email and explain the outcome.

        Args:
            email: The record's current email
            bundle: Decoded signature bundle

        Returns:
            VerificationResult (never raises for bad signatures or keys)
        """
        try:
            email_hash = sha384_hex(email)
        except InvalidInputError as e:
            return VerificationResult.fail(VerificationFailure.INVALID_INPUT, str(e))

        if not isinstance(bundle, SignatureBundle):
            return VerificationResult.fail(
                VerificationFailure.MALFORMED_BUNDLE,
                f"Expected SignatureBundle, got {type(bundle).__name__}",
                email_hash,
            )

        if bundle.hash_algorithm != HASH_ALGORITHM:
            return VerificationResult.fail(
                VerificationFailure.UNSUPPORTED_HASH,
                f"Unsupported hash algorithm: {bundle.hash_algorithm!r}",
                email_hash,
            )

        try:
            algorithm = bundle.resolve_algorithm()
        except UnsupportedAlgorithmError as e:
            return VerificationResult.fail(VerificationFailure.UNSUPPORTED_ALGORITHM, str(e), email_hash)

        try:
            public_key = pem_to_public_key(bundle.public_key)
        except (ValueError, TypeError, AttributeError) as e:
            return VerificationResult.fail(VerificationFailure.MALFORMED_PUBLIC_KEY, str(e), email_hash)

        if not algorithm.accepts_public_key(public_key):
            return VerificationResult.fail(
                VerificationFailure.KEY_ALGORITHM_MISMATCH,
                f"Public key does not match {algorithm!r}",
                email_hash,
            )

        try:
            signature = algorithm.decode_signature(bundle.signature)
        except (ValueError, TypeError, AttributeError) as e:
            return VerificationResult.fail(
                VerificationFailure.MALFORMED_SIGNATURE,
                f"Invalid signature encoding: {e}",
                email_hash,
            )

        try:
            algorithm.verify(public_key, signature, email_hash.encode("utf-8"))
        except InvalidSignature:
            return VerificationResult.fail(
                VerificationFailure.SIGNATURE_MISMATCH,
                "Signature verification failed",
                email_hash,
            )
        except Exception as e:
            logger.warning(f"Signature verification error: {e}")
            return VerificationResult.fail(
                VerificationFailure.MALFORMED_SIGNATURE,
                f"Signature verification error: {e}",
                email_hash,
            )

        return VerificationResult.ok(email_hash)

    def check_record(self, record: "SignedRecord", bundle: SignatureBundle) -> VerificationResult:
        """
        Verify a stored record, additionally requiring its email_hash column to match.

        An empty email_hash is not an error: the signature check alone decides.
        """
        result = self.check(record.email, bundle)
        if result.valid and record.email_hash and record.email_hash != result.email_hash:
            return VerificationResult.fail(
                VerificationFailure.HASH_MISMATCH,
                "Stored email hash does not match the email",
                result.email_hash,
            )
        return result
