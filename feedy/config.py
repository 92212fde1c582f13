# feedy/config.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).resolve().parent

# Load the .env from the project root so imports from alembic or scripts see it too
dotenv_path = PACKAGE_DIR.parent / ".env"
if dotenv_path.exists():
    load_dotenv(dotenv_path)
else:
    load_dotenv()

BACKEND_DOCUMENT = "document"
BACKEND_TREE = "tree"
BACKEND_LOCAL = "local"
BACKENDS = (BACKEND_DOCUMENT, BACKEND_TREE, BACKEND_LOCAL)

FALLBACK_ORIGINS = [
    "http://127.0.0.1:5173",
    "http://localhost:5173",
]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def default_database_url() -> str:
    sqlite_db_path = PACKAGE_DIR / "feedy_fallback.db"
    return f"sqlite+aiosqlite:///{sqlite_db_path}"


@dataclass
class Settings:
    backend: str = BACKEND_DOCUMENT
    database_url: str = field(default_factory=default_database_url)
    sql_echo: bool = False
    tree_store_url: Optional[str] = None
    tree_store_auth_token: Optional[str] = None
    local_store_path: Path = PACKAGE_DIR / "feedy_local_store.json"
    mock_seed: int = 42
    mock_feedback_count: int = 50
    feedback_fetch_limit: int = 100
    insights_api_key: Optional[str] = None
    insights_base_url: Optional[str] = "https://api.mistral.ai/v1"
    insights_model: str = "mistral-small-latest"
    public_base_url: str = "http://127.0.0.1:5173"
    allowed_origins: List[str] = field(default_factory=lambda: list(FALLBACK_ORIGINS))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("FEEDY_BACKEND", BACKEND_DOCUMENT).strip().lower()
        if backend not in BACKENDS:
            raise ValueError(
                f"FEEDY_BACKEND must be one of {', '.join(BACKENDS)}, got '{backend}'"
            )

        env_origins = os.getenv("BACKEND_ALLOWED_ORIGINS")
        origins = []
        if env_origins:
            origins = [origin.strip() for origin in env_origins.split(",") if origin.strip()]
        if not origins:
            origins = list(FALLBACK_ORIGINS)

        local_store_path = os.getenv("LOCAL_STORE_PATH")

        return cls(
            backend=backend,
            database_url=os.getenv("DATABASE_URL") or default_database_url(),
            sql_echo=_env_bool("SQL_ECHO", False),
            tree_store_url=os.getenv("TREE_STORE_URL") or None,
            tree_store_auth_token=os.getenv("TREE_STORE_AUTH_TOKEN") or None,
            local_store_path=Path(local_store_path)
            if local_store_path
            else PACKAGE_DIR / "feedy_local_store.json",
            mock_seed=_env_int("MOCK_SEED", 42),
            mock_feedback_count=_env_int("MOCK_FEEDBACK_COUNT", 50),
            feedback_fetch_limit=_env_int("FEEDBACK_FETCH_LIMIT", 100),
            insights_api_key=os.getenv("INSIGHTS_API_KEY")
            or os.getenv("MISTRAL_API_KEY")
            or os.getenv("OPENAI_API_KEY"),
            insights_base_url=os.getenv("INSIGHTS_BASE_URL", "https://api.mistral.ai/v1")
            or None,
            insights_model=os.getenv("INSIGHTS_MODEL", "mistral-small-latest"),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://127.0.0.1:5173"),
            allowed_origins=origins,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
