"""Engine configuration using Pydantic Settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from CANGKULAN_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="CANGKULAN_", env_file=".env", env_file_encoding="utf-8",
        case_sensitive=False, extra="ignore",
    )

    # Contention retry (3 attempts total)
    retry_max_retries: int = 2
    retry_base_delay: float = 1.5  # seconds
    retry_max_delay: float = 8.0
    retry_backoff_factor: float = 2.0
    retry_jitter_min: float = 0.75
    retry_jitter_max: float = 1.25

    # State refresh polling
    poll_base_interval: float = 3.0
    poll_max_interval: float = 10.0
    poll_backoff_factor: float = 1.3
    poll_error_factor: float = 1.5

    # Proof modes
    ai_seed_mode: str = "nizk"
    multiplayer_seed_mode: str = "pedersen"
    seed_mode_override: Optional[str] = None

    # Secret persistence
    storage_path: str = "cangkulan-secrets.json"
    storage_salt: str = "cangkulan-zk-storage-v2"
    storage_encrypt: bool = True

    # External circuit
    circuit_dir: str = "circuits/seed_verify"
    circuit_name: str = "seed_verify"
    nargo_bin: str = "nargo"
    bb_bin: str = "bb"

    # Application
    app_env: str = "dev"
    log_level: str = "INFO"
    db_path: str = "db.json"
