"""
Crypto API endpoints

Publishes the server's current public key and exposes key rotation. Signatures
already stored keep verifying after a rotation because each bundle embeds the
key that produced it.
"""
import base64
import logging

from fastapi import APIRouter, Depends

from backend.api.dependencies import require_pipeline
from backend.api.schemas import PublicKeyInfoResponse, PublicKeyResponse
from backend.core.signing.pipeline import RecordSigningPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crypto", tags=["crypto"])


@router.get("/public-key", response_model=PublicKeyResponse)
async def get_public_key(pipeline: RecordSigningPipeline = Depends(require_pipeline)):
    """
    Current public key as a base64 protobuf PublicKeyInfo message.
    """
    info = pipeline.key_store.key_info()
    payload = pipeline.record_codec.encode_public_key_info(info)
    return PublicKeyResponse(data=base64.b64encode(payload).decode("ascii"))


@router.get("/public-key-info", response_model=PublicKeyInfoResponse)
async def get_public_key_info(pipeline: RecordSigningPipeline = Depends(require_pipeline)):
    """
    Current public key as JSON.

    **Returns:** `{publicKey, algorithm, curve | keySize, timestamp}`
    """
    return PublicKeyInfoResponse(data=pipeline.key_store.key_info())


@router.post("/rotate", response_model=PublicKeyInfoResponse)
async def rotate_keys(pipeline: RecordSigningPipeline = Depends(require_pipeline)):
    """
    Replace the server keypair. New signatures use the new key.
    """
    pipeline.key_store.rotate()
    info = pipeline.key_store.key_info()
    logger.info(f"Signing key rotated via API ({info['algorithm']})")
    return PublicKeyInfoResponse(data=info, message="Signing keys rotated")
