"""
Signing Errors

Exception hierarchy for the record signing subsystem.

Setup errors (KeyLoadError, KeyGenerationError, NotInitializedError) are fatal to
the operation that hits them. MalformedSignatureError is absorbed by batch
verification and reported as a failed item. A signature that simply does not
match is never an exception; see backend.core.signing.verify.
"""


class SigningError(Exception):
    """Base class for all signing subsystem errors."""


class NotInitializedError(SigningError):
    """Raised when the key store is used before initialize() succeeded."""


class KeyGenerationError(SigningError):
    """Raised when a new keypair cannot be generated or persisted."""


class KeyLoadError(SigningError):
    """Raised when persisted key material exists but cannot be loaded."""


class InvalidInputError(SigningError, ValueError):
    """Raised for bad arguments to hash/sign (empty or non-string input)."""


class MalformedSignatureError(SigningError, ValueError):
    """Raised when an encoded signature bundle cannot be decoded."""


class UnsupportedAlgorithmError(SigningError, ValueError):
    """Raised for an algorithm tag or parameter that has no registered variant."""
