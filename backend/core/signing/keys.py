"""
Server Key Store

Owns the server's signing keypair: generation, on-disk persistence, loading and
rotation. Uses the cryptography library for all key operations.

On-disk layout (under the configured key directory):
    private.pem  PKCS#8 PEM, mode 0600
    public.pem   SubjectPublicKeyInfo PEM

The store is a constructed object handed to the signing pipeline. Initialization
runs exactly once per instance behind a cached one-shot future; after that the
key material is read-only except during rotate().
"""

import logging
import os
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from backend.core.clock import utc_now_iso
from backend.core.signing.algorithms import (
    EcdsaAlgorithm,
    SignatureAlgorithm,
    algorithm_for_key,
)
from backend.core.signing.errors import (
    KeyGenerationError,
    KeyLoadError,
    NotInitializedError,
    UnsupportedAlgorithmError,
)

logger = logging.getLogger(__name__)


PRIVATE_KEY_FILENAME = "private.pem"
PUBLIC_KEY_FILENAME = "public.pem"


# ============================================================
# PEM helpers
# ============================================================

def public_key_to_pem(public_key) -> str:
    """Serialize a public key to SubjectPublicKeyInfo PEM text."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def pem_to_public_key(pem: str):
    """
    Deserialize PEM text into a public key object.

    Raises:
        ValueError: If the PEM cannot be parsed
    """
    try:
        return serialization.load_pem_public_key(pem.encode("ascii"))
    except Exception as e:
        raise ValueError(f"Invalid public key: {e}") from e


def private_key_to_pem(private_key) -> bytes:
    """
    Serialize a private key to unencrypted PKCS#8 PEM.

    WARNING: the result is secret material. Never log it.
    """
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _write_temp(path: Path, data: bytes, mode: int) -> Path:
    """Write *data* to a sibling temp file created with *mode* and return its path."""
    temp_path = path.with_suffix(path.suffix + ".tmp")
    fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return temp_path


def save_keypair(private_key, directory: Path) -> None:
    """
    Persist both halves of a keypair under *directory*.

    Both files are staged before either is replaced. If the public key cannot
    be put in place, the previous private key is restored so the directory
    never holds halves of two different keypairs.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    private_path = directory / PRIVATE_KEY_FILENAME
    public_path = directory / PUBLIC_KEY_FILENAME

    staged = []
    try:
        staged.append(_write_temp(private_path, private_key_to_pem(private_key), 0o600))
        staged.append(_write_temp(
            public_path,
            public_key_to_pem(private_key.public_key()).encode("ascii"),
            0o644,
        ))
    except OSError:
        for temp_path in staged:
            temp_path.unlink(missing_ok=True)
        raise

    private_temp, public_temp = staged
    previous_private = private_path.read_bytes() if private_path.exists() else None
    os.replace(private_temp, private_path)
    try:
        os.replace(public_temp, public_path)
    except OSError:
        public_temp.unlink(missing_ok=True)
        if previous_private is None:
            private_path.unlink(missing_ok=True)
        else:
            os.replace(_write_temp(private_path, previous_private, 0o600), private_path)
        raise


def load_keypair(directory: Path):
    """
    Load and cross-check a persisted keypair.

    Returns:
        The private key object

    Raises:
        ValueError: If either file is unreadable, unparseable, or the halves don't match
    """
    directory = Path(directory)
    private_pem = (directory / PRIVATE_KEY_FILENAME).read_bytes()
    public_pem = (directory / PUBLIC_KEY_FILENAME).read_text()

    try:
        private_key = serialization.load_pem_private_key(private_pem, password=None)
    except Exception as e:
        raise ValueError(f"Failed to parse private key: {e}") from e

    public_key = pem_to_public_key(public_pem)
    if public_key_to_pem(private_key.public_key()) != public_key_to_pem(public_key):
        raise ValueError("Public key file does not match the private key")

    return private_key


# ============================================================
# Key store
# ============================================================

class _KeyMaterial(NamedTuple):
    private_key: Any
    public_key: Any
    public_pem: str
    algorithm: SignatureAlgorithm
    loaded_at: str


class KeyStore:
    """
    Persistent holder of the server signing keypair.

    Usage:
        store = KeyStore(Path("keys"), EcdsaAlgorithm("secp256k1"))
        store.initialize()
        private_key = store.get_private_key()
    """

    def __init__(self, directory: Union[str, Path], algorithm: Optional[SignatureAlgorithm] = None):
        """
        Args:
            directory: Directory holding private.pem / public.pem
            algorithm: Variant used when a new keypair has to be generated
                       (default: ECDSA over secp256k1)
        """
        self.directory = Path(directory)
        self.private_key_path = self.directory / PRIVATE_KEY_FILENAME
        self.public_key_path = self.directory / PUBLIC_KEY_FILENAME
        self.algorithm = algorithm or EcdsaAlgorithm()
        self._material: Optional[_KeyMaterial] = None
        # dict.setdefault is atomic, so exactly one caller installs the future
        self._gate: Dict[str, Future] = {}

    @property
    def is_initialized(self) -> bool:
        return self._material is not None

    def initialize(self) -> None:
        """
        Load the persisted keypair, or generate and persist a new one.

        Idempotent: once it has succeeded, later calls return immediately.
        Concurrent first callers all wait on the same outcome.

        Raises:
            KeyLoadError: Persisted key data is present but malformed
            KeyGenerationError: A new keypair could not be generated or saved
        """
        candidate: Future = Future()
        ready = self._gate.setdefault("ready", candidate)
        if ready is not candidate:
            ready.result()
            return

        try:
            self._material = self._load_or_create()
        except BaseException as e:
            ready.set_exception(e)
            # Allow a later retry once the operator fixed the key directory
            self._gate.pop("ready", None)
            raise
        ready.set_result(None)

    def _load_or_create(self) -> _KeyMaterial:
        private_exists = self.private_key_path.exists()
        public_exists = self.public_key_path.exists()

        if private_exists and public_exists:
            material = self._load()
            logger.info(
                f"Loaded existing {material.algorithm.tag} signing keys from {self.directory}"
            )
            return material

        if private_exists or public_exists:
            present = self.private_key_path if private_exists else self.public_key_path
            raise KeyLoadError(f"Incomplete keypair in {self.directory}: only {present.name} exists")

        material = self._generate()
        logger.info(f"Generated new {material.algorithm.tag} signing keypair in {self.directory}")
        return material

    def _load(self) -> _KeyMaterial:
        try:
            private_key = load_keypair(self.directory)
            algorithm = algorithm_for_key(private_key)
        except (OSError, ValueError) as e:
            raise KeyLoadError(f"Failed to load keys from {self.directory}: {e}") from e

        if algorithm != self.algorithm:
            logger.warning(
                f"Persisted key is {algorithm!r}, configured {self.algorithm!r}; "
                "using the persisted key until the next rotation"
            )
        return self._material_for(private_key, algorithm)

    def _generate(self, algorithm: Optional[SignatureAlgorithm] = None) -> _KeyMaterial:
        algorithm = algorithm or self.algorithm
        try:
            private_key = algorithm.generate_private_key()
            save_keypair(private_key, self.directory)
        except (UnsupportedAlgorithmError, UnsupportedAlgorithm, ValueError, OSError) as e:
            raise KeyGenerationError(f"Failed to generate {algorithm!r} keypair: {e}") from e
        return self._material_for(private_key, algorithm)

    @staticmethod
    def _material_for(private_key, algorithm: SignatureAlgorithm) -> _KeyMaterial:
        public_key = private_key.public_key()
        return _KeyMaterial(
            private_key=private_key,
            public_key=public_key,
            public_pem=public_key_to_pem(public_key),
            algorithm=algorithm,
            loaded_at=utc_now_iso(),
        )

    def _require(self) -> _KeyMaterial:
        material = self._material
        if material is None:
            raise NotInitializedError("KeyStore not initialized. Call initialize() first.")
        return material

    def get_private_key(self):
        """Private key object. Never leaves the signing boundary."""
        return self._require().private_key

    def get_public_key(self):
        return self._require().public_key

    def get_public_key_pem(self) -> str:
        return self._require().public_pem

    def get_algorithm(self) -> SignatureAlgorithm:
        return self._require().algorithm

    def key_info(self) -> Dict[str, Any]:
        """
        Public key information for API responses.

        Returns:
            Dict with publicKey, algorithm, curve or keySize, and timestamp
        """
        material = self._require()
        curve, key_size = material.algorithm.bundle_parameters()
        info: Dict[str, Any] = {
            "publicKey": material.public_pem,
            "algorithm": material.algorithm.tag,
        }
        if curve is not None:
            info["curve"] = curve
        if key_size is not None:
            info["keySize"] = key_size
        info["timestamp"] = material.loaded_at
        return info

    def rotate(self) -> None:
        """
        Replace the active keypair with a freshly generated one.

        Previously issued signature bundles stay verifiable because each embeds
        its own public key. New signatures use the new key.

        Raises:
            NotInitializedError: Called before initialize()
            KeyGenerationError: The new keypair could not be generated or saved
        """
        self._require()
        self._material = self._generate()
        logger.info(f"Rotated signing keys in {self.directory}")
