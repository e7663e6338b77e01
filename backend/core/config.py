"""
Service settings

Database, signing key and API options read from the environment or a .env
file. Defaults run a local SQLite store with ECDSA secp256k1 keys under ./keys.
"""
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Settings for the signed user store."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Database Configuration
    # ============================================================
    database_url: str = Field("sqlite:///./users.db", description="SQLAlchemy connection URL")
    database_pool_size: int = Field(5, description="Database connection pool size")
    database_max_overflow: int = Field(10, description="Max overflow connections")

    # ============================================================
    # Signing Configuration
    # ============================================================
    keys_dir: str = Field("keys", description="Directory holding private.pem and public.pem")
    signing_algorithm: str = Field("ECDSA", description="Signature algorithm for new keys: ECDSA or RSA-SHA384")
    signing_curve: str = Field("secp256k1", description="Curve for ECDSA keys")
    rsa_key_size: int = Field(2048, description="Modulus size for RSA-SHA384 keys")
    verify_max_workers: int = Field(8, description="Thread pool size for batch verification")

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field(
        "http://localhost:3000,http://localhost:8000",
        description="Comma-separated CORS allowed origins"
    )
    api_port: int = Field(8000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


# Process-wide instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Shared Settings instance, created on first use.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Re-read the environment and replace the shared instance."""
    global _settings
    _settings = Settings()
    return _settings
