"""
Record Signing Pipeline

Wires the signing components to the points in a record's life where integrity
matters:

    create / email change  -> hash + sign, return fields to persist
    export                 -> binary encode (signatures carried verbatim)
    verify (batch)         -> decode each bundle and verify, concurrently
    import                 -> binary decode, then verify every record

All collaborators are passed in. build_pipeline() assembles the default set from
Settings; tests construct pipelines around temporary key stores.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from backend.core.config import Settings
from backend.core.export.codec import BinaryRecordCodec, BytesLike
from backend.core.export.records import RecordList, SignedRecord
from backend.core.signing.algorithms import get_algorithm
from backend.core.signing.codec import SignatureCodec
from backend.core.signing.errors import MalformedSignatureError
from backend.core.signing.keys import KeyStore
from backend.core.signing.models import SignatureFields
from backend.core.signing.signer import HashSigner
from backend.core.signing.verify import VerificationFailure, VerificationResult, Verifier

logger = logging.getLogger(__name__)


class RecordSigningPipeline:
    """Signing and verification entry points used by the service and API layers."""

    def __init__(
        self,
        key_store: Optional[KeyStore],
        signer: HashSigner,
        signature_codec: SignatureCodec,
        verifier: Verifier,
        record_codec: BinaryRecordCodec,
        max_workers: int = 8,
    ):
        """
        Args:
            key_store: Server key store; None for verification-only use
                       (remote verifiers never hold the private key)
            signer: Hashes and signs emails
            signature_codec: Encodes and decodes signature bundles
            verifier: Checks bundles against emails
            record_codec: Binary export codec
            max_workers: Thread pool size for batch verification
        """
        self.key_store = key_store
        self.signer = signer
        self.signature_codec = signature_codec
        self.verifier = verifier
        self.record_codec = record_codec
        self.max_workers = max(1, max_workers)

    def on_create_or_email_change(self, email: str) -> SignatureFields:
        """
        Sign an email for storage.

        Args:
            email: The new email value

        Returns:
            SignatureFields with the hex hash and encoded bundle to persist

        Raises:
            InvalidInputError: Empty or non-string email
            NotInitializedError: Key store not initialized
        """
        signed = self.signer.sign_email(email)
        return SignatureFields(
            email_hash=signed.email_hash,
            signature_encoded=self.signature_codec.encode(signed.signature),
        )

    def on_export(self, records: Iterable[SignedRecord], exported_at: Optional[str] = None) -> bytes:
        payload = self.record_codec.encode_list(records, exported_at=exported_at)
        logger.info(f"Exported signed records ({len(payload)} bytes)")
        return payload

    def on_verify_record(self, record: SignedRecord) -> VerificationResult:
        """Verify one record and report why it failed, if it did."""
        if not record.signature:
            return VerificationResult.fail(
                VerificationFailure.MISSING_SIGNATURE,
                f"Record {record.id} has no signature",
            )
        try:
            bundle = self.signature_codec.decode(record.signature)
        except MalformedSignatureError as e:
            return VerificationResult.fail(VerificationFailure.MALFORMED_BUNDLE, str(e))
        return self.verifier.check_record(record, bundle)

    def on_verify_batch(self, records: Iterable[SignedRecord]) -> Dict[int, bool]:
        """
        Verify many records concurrently.

        A record that cannot be verified for any reason maps to False; the batch
        itself never fails because of one record.

        Returns:
            Mapping of record id to verification outcome
        """
        records = list(records)
        if not records:
            return {}

        results: Dict[int, bool] = {}
        workers = min(self.max_workers, len(records))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = executor.map(self.on_verify_record, records)
            for record, outcome in zip(records, outcomes):
                results[record.id] = outcome.valid

        failed = sum(1 for valid in results.values() if not valid)
        if failed:
            logger.warning(f"Batch verification: {failed}/{len(results)} records failed")
        else:
            logger.info(f"Batch verification: all {len(results)} records verified")
        return results

    def on_import(self, data: BytesLike) -> Tuple[RecordList, Dict[int, bool]]:
        """
        Decode a binary export and verify every record in it.

        Raises:
            RecordCodecError: If the payload is not a valid export
        """
        record_list = self.record_codec.decode_list(data)
        return record_list, self.on_verify_batch(record_list.records)


def build_key_store(settings: Settings) -> KeyStore:
    """Create (but do not initialize) the key store described by settings."""
    algorithm = get_algorithm(
        settings.signing_algorithm,
        curve=settings.signing_curve,
        key_size=settings.rsa_key_size,
    )
    return KeyStore(Path(settings.keys_dir), algorithm)


def build_pipeline(settings: Settings, key_store: Optional[KeyStore] = None) -> RecordSigningPipeline:
    """
    Assemble a pipeline with an initialized key store.

    Args:
        settings: Application settings
        key_store: Existing store to reuse (default: build one from settings)

    Raises:
        UnsupportedAlgorithmError: Configured algorithm parameters are not supported
        KeyLoadError / KeyGenerationError: Keys could not be loaded or created
    """
    key_store = key_store or build_key_store(settings)
    key_store.initialize()
    return RecordSigningPipeline(
        key_store=key_store,
        signer=HashSigner(key_store),
        signature_codec=SignatureCodec(),
        verifier=Verifier(),
        record_codec=BinaryRecordCodec(),
        max_workers=settings.verify_max_workers,
    )



def build_verification_pipeline(max_workers: int = 8) -> RecordSigningPipeline:
    """Pipeline for verifying exports away from the server (no key store)."""
    return RecordSigningPipeline(
        key_store=None,
        signer=HashSigner(),
        signature_codec=SignatureCodec(),
        verifier=Verifier(),
        record_codec=BinaryRecordCodec(),
        max_workers=max_workers,
    )
