from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    return backend_dir.parent.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)
_DEFAULT_DB_PATH = (_PROJECT_ROOT / "data" / "kamon.db").resolve()
_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"
_SQLITE_SYNC_PREFIX = "sqlite:///"


class Settings(BaseSettings):
    # Chain RPC (Base mainnet by default)
    RPC_URL: str = "https://mainnet.base.org"
    FALLBACK_RPC_URLS: list[str] = ["https://base-rpc.publicnode.com"]
    CHAIN_ID: int = 8453
    RPC_TIMEOUT_SECONDS: float = 10.0
    RPC_MAX_RETRY_ATTEMPTS: int = 3
    RPC_RETRY_BASE_DELAY: float = 0.5

    # Public Base RPC rejects eth_getLogs spans above ~3k blocks.
    LOG_MAX_BLOCK_RANGE: int = 2000

    # House membership tokens (ERC-1155)
    HOUSE_FIRE_ADDRESS: str = ""
    HOUSE_WATER_ADDRESS: str = ""
    HOUSE_FOREST_ADDRESS: str = ""
    HOUSE_EARTH_ADDRESS: str = ""
    HOUSE_WIND_ADDRESS: str = ""

    # Per-wallet data source contracts
    STAKING_POOL_ADDRESS: str = ""
    DOJO_RESOLVER_ADDRESS: str = ""
    ONCHAT_ADDRESS: str = "0x898d291c2160a9cb110398e9df3693b7f2c4af2d"
    ONCHAT_CHANNEL_SLUG: str = "sekigahara"

    # Scan start blocks. HOUSE_TOKEN_START_BLOCK is the House tokens' deployment
    # block; SEASON_START_BLOCK bounds the OnChat window and falls back to it.
    # Either left unset scans only the last LOG_SCAN_LOOKBACK_BLOCKS blocks.
    HOUSE_TOKEN_START_BLOCK: Optional[int] = None
    SEASON_START_BLOCK: Optional[int] = None
    LOG_SCAN_LOOKBACK_BLOCKS: int = 20_000

    # Season
    MAX_DOJO_STREAK: int = 30  # 30-day streak = 100

    # Scoring weights (each set must sum to 1)
    SCORING_WEIGHT_DOJO: float = 0.40
    SCORING_WEIGHT_STAKING: float = 0.30
    SCORING_WEIGHT_ONCHAT: float = 0.30
    SCORING_FALLBACK_WEIGHT_DOJO: float = 0.40
    SCORING_FALLBACK_WEIGHT_STAKING: float = 0.60

    # Leaderboard cache
    LEADERBOARD_CACHE_TTL_SECONDS: int = 15 * 60
    LEADERBOARD_CACHE_KEY: str = "kamon_leaderboard_cache"
    LEADERBOARD_COMPUTE_TIMEOUT_SECONDS: float = 120.0

    # Database - canonical path under project-root data directory
    DATABASE_URL: str = f"sqlite+aiosqlite:///{_DEFAULT_DB_PATH}"

    # Production Settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None
    CORS_ORIGINS: list[str] = ["*"]

    @field_validator("RPC_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text
        return text.rstrip("/")

    @field_validator(
        "HOUSE_FIRE_ADDRESS",
        "HOUSE_WATER_ADDRESS",
        "HOUSE_FOREST_ADDRESS",
        "HOUSE_EARTH_ADDRESS",
        "HOUSE_WIND_ADDRESS",
        "STAKING_POOL_ADDRESS",
        "DOJO_RESOLVER_ADDRESS",
        "ONCHAT_ADDRESS",
        mode="before",
    )
    @classmethod
    def _normalize_address_field(cls, value: object) -> object:
        """Contract addresses are compared lower-cased everywhere."""
        if value is None:
            return ""
        return str(value).strip().strip('"').strip("'").lower()

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: object) -> object:
        """Normalize DB URL so cwd changes never split databases."""
        if value is None:
            return value

        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text

        # Convert relative SQLite paths to absolute project-root paths.
        for prefix in (_SQLITE_ASYNC_PREFIX, _SQLITE_SYNC_PREFIX):
            if not text.startswith(prefix):
                continue
            path_part = text[len(prefix) :]
            if not path_part:
                return text
            if path_part in {":memory:", "/:memory:"}:
                return f"{prefix}:memory:"
            absolute = (
                Path(path_part).resolve()
                if path_part.startswith("/")
                else (_PROJECT_ROOT / path_part).resolve()
            )
            return f"{prefix}{absolute}"

        return text

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"


settings = Settings()
