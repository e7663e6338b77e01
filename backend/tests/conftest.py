"""
Shared test fixtures.

Provides temporary key stores, signing pipelines, an in-memory SQLite database
and a FastAPI test client wired to both.
"""
# Load .env BEFORE any other imports
from pathlib import Path
from dotenv import load_dotenv

# Load from repo root .env
_repo_root = Path(__file__).parent.parent.parent
load_dotenv(_repo_root / ".env")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.core.config import Settings
from backend.core.database.models import Base
from backend.core.export.records import SignedRecord
from backend.core.signing.algorithms import EcdsaAlgorithm, RsaAlgorithm
from backend.core.signing.keys import KeyStore
from backend.core.signing.pipeline import build_pipeline


@pytest.fixture
def keys_dir(tmp_path):
    """Empty key directory."""
    return tmp_path / "keys"


@pytest.fixture
def key_store(keys_dir):
    """Initialized ECDSA secp256k1 key store."""
    store = KeyStore(keys_dir, EcdsaAlgorithm("secp256k1"))
    store.initialize()
    return store


@pytest.fixture(scope="session")
def rsa_key_store(tmp_path_factory):
    """Initialized RSA-SHA384 key store (shared: RSA generation is slow)."""
    store = KeyStore(tmp_path_factory.mktemp("rsa-keys"), RsaAlgorithm(2048))
    store.initialize()
    return store


@pytest.fixture
def test_settings(keys_dir):
    return Settings(
        database_url="sqlite://",
        keys_dir=str(keys_dir),
        verify_max_workers=4,
    )


@pytest.fixture
def pipeline(test_settings, key_store):
    """Signing pipeline around the temporary key store."""
    return build_pipeline(test_settings, key_store=key_store)


@pytest.fixture
def make_record(pipeline):
    """Factory for correctly signed SignedRecords."""
    def _make(record_id: int, email: str, role: str = "user", status: str = "active") -> SignedRecord:
        fields = pipeline.on_create_or_email_change(email)
        return SignedRecord(
            id=record_id,
            email=email,
            role=role,
            status=status,
            email_hash=fields.email_hash,
            signature=fields.signature_encoded,
            created_at="2024-12-01T10:00:00.000Z",
            updated_at="2024-12-01T10:00:00.000Z",
        )
    return _make


# ============================================================
# Database
# ============================================================

@pytest.fixture
def test_engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def test_db(test_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ============================================================
# API
# ============================================================

@pytest.fixture
def client(test_db, test_engine, pipeline, monkeypatch):
    """Test client with database and signing pipeline overrides."""
    from backend.api.main import app
    from backend.core.database import connection, get_db

    def override_get_db():
        yield test_db

    monkeypatch.setattr(connection, "engine", test_engine)
    app.dependency_overrides[get_db] = override_get_db
    app.state.pipeline = pipeline
    app.state.signing_error = None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.pipeline = None
