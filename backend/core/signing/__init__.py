"""
Record Signing Module

SHA-384 email hashing with asymmetric signatures (ECDSA or RSA-SHA384), a
self-describing signature bundle, independent verification and the pipeline that
applies them to stored and exported user records.
"""

from backend.core.signing.algorithms import (
    ECDSA_TAG,
    HASH_ALGORITHM,
    RSA_TAG,
    EcdsaAlgorithm,
    RsaAlgorithm,
    SignatureAlgorithm,
    get_algorithm,
)
from backend.core.signing.codec import SignatureCodec
from backend.core.signing.errors import (
    InvalidInputError,
    KeyGenerationError,
    KeyLoadError,
    MalformedSignatureError,
    NotInitializedError,
    SigningError,
    UnsupportedAlgorithmError,
)
from backend.core.signing.keys import KeyStore
from backend.core.signing.models import SignatureBundle, SignatureFields, SignedEmail
from backend.core.signing.pipeline import (
    RecordSigningPipeline,
    build_pipeline,
    build_verification_pipeline,
)
from backend.core.signing.signer import HashSigner, sha384_hex
from backend.core.signing.verify import VerificationFailure, VerificationResult, Verifier

__all__ = [
    # Algorithms
    "ECDSA_TAG",
    "HASH_ALGORITHM",
    "RSA_TAG",
    "EcdsaAlgorithm",
    "RsaAlgorithm",
    "SignatureAlgorithm",
    "get_algorithm",
    # Keys
    "KeyStore",
    # Signing
    "HashSigner",
    "sha384_hex",
    "SignatureBundle",
    "SignatureFields",
    "SignedEmail",
    "SignatureCodec",
    # Verification
    "Verifier",
    "VerificationFailure",
    "VerificationResult",
    # Pipeline
    "RecordSigningPipeline",
    "build_pipeline",
    "build_verification_pipeline",
    # Errors
    "SigningError",
    "NotInitializedError",
    "KeyGenerationError",
    "KeyLoadError",
    "InvalidInputError",
    "MalformedSignatureError",
    "UnsupportedAlgorithmError",
]
