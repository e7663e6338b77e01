"""
Email Hash Signer

Computes the SHA-384 content hash of an email and signs it with the server key.

Signing convention (wire contract shared with every verifier):
    email_hash = hex(SHA-384(utf8(email)))
    signature  = Sign_SHA-384(private_key, utf8(email_hash))

The signature covers the hex hash text, never the raw email. Verifiers must
re-derive email_hash from the email and check the signature against it.
"""

import hashlib
import logging
from typing import Optional

from backend.core.clock import utc_now_iso
from backend.core.signing.algorithms import HASH_ALGORITHM, algorithm_for_key
from backend.core.signing.errors import (
    InvalidInputError,
    NotInitializedError,
    UnsupportedAlgorithmError,
)
from backend.core.signing.keys import KeyStore, public_key_to_pem
from backend.core.signing.models import SignatureBundle, SignedEmail

logger = logging.getLogger(__name__)


def sha384_hex(value: str) -> str:
    """
    SHA-384 of the UTF-8 bytes of *value*, as 96 lowercase hex characters.

    Raises:
        InvalidInputError: If value is not a non-empty string
    """
    if not isinstance(value, str) or not value:
        raise InvalidInputError("Input must be a non-empty string")
    return hashlib.sha384(value.encode("utf-8")).hexdigest()


class HashSigner:
    """Hashes emails and signs the hashes with the key store's active key."""

    def __init__(self, key_store: Optional[KeyStore] = None):
        """
        Args:
            key_store: Source of the active private key for sign_email().
                       hash() and sign() work without one.
        """
        self.key_store = key_store

    def hash(self, value: str) -> str:
        return sha384_hex(value)

    def sign(self, message_hash: str, private_key) -> SignatureBundle:
        """
        Sign a message hash and wrap the result in a self-describing bundle.

        Args:
            message_hash: Hex hash text to sign (its UTF-8 bytes are signed)
            private_key: cryptography private key object (EC or RSA)

        Returns:
            SignatureBundle carrying the public counterpart and algorithm metadata

        Raises:
            InvalidInputError: Empty/non-string hash or unsupported key type
        """
        if not isinstance(message_hash, str) or not message_hash:
            raise InvalidInputError("Message hash must be a non-empty string")

        try:
            algorithm = algorithm_for_key(private_key)
        except UnsupportedAlgorithmError as e:
            raise InvalidInputError(str(e)) from e

        signature = algorithm.sign(private_key, message_hash.encode("utf-8"))
        curve, key_size = algorithm.bundle_parameters()
        return SignatureBundle(
            signature=signature,
            public_key=public_key_to_pem(private_key.public_key()),
            algorithm=algorithm.tag,
            curve=curve,
            key_size=key_size,
            hash_algorithm=HASH_ALGORITHM,
        )

    def sign_email(self, email: str) -> SignedEmail:
        """
        Hash an email and sign the hash with the current server key.

        This is the one operation the write path calls.

        Raises:
            InvalidInputError: Empty or non-string email
            NotInitializedError: Key store missing or not initialized
        """
        email_hash = self.hash(email)
        if self.key_store is None:
            raise NotInitializedError("HashSigner has no key store")

        bundle = self.sign(email_hash, self.key_store.get_private_key())
        logger.debug(f"Signed email hash {email_hash[:16]}... with {bundle.algorithm}")
        return SignedEmail(
            email=email,
            email_hash=email_hash,
            signature=bundle,
            timestamp=utc_now_iso(),
        )
