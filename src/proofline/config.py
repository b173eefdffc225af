"""Runtime settings loaded from the environment (and a .env file if present)."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOME = "~/.proofline"
DB_NAME = "runs.db"


@dataclass(frozen=True)
class Settings:
    home: Path
    follow_up_window: int = 10
    follow_up_count: int = 3
    max_files_per_root: int = 600
    llm_provider: str | None = None
    llm_model: str | None = None
    llm_base_url: str | None = None
    llm_timeout: float = 20.0

    @property
    def db_path(self) -> Path:
        return self.home / DB_NAME


def load_env() -> None:
    """Load .env file from the working directory or a parent, if python-dotenv is available."""
    try:
        from dotenv import load_dotenv
        cwd = Path.cwd()
        for parent in [cwd, *cwd.parents]:
            env_file = parent / ".env"
            if env_file.exists():
                load_dotenv(env_file)
                return
    except ImportError:
        pass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings() -> Settings:
    load_env()
    return Settings(
        home=Path(os.environ.get("PROOFLINE_HOME", DEFAULT_HOME)).expanduser(),
        follow_up_window=_int_env("PROOFLINE_FOLLOW_UP_WINDOW", 10),
        follow_up_count=_int_env("PROOFLINE_FOLLOW_UP_COUNT", 3),
        max_files_per_root=_int_env("PROOFLINE_MAX_FILES_PER_ROOT", 600),
        llm_provider=os.environ.get("PROOFLINE_LLM_PROVIDER") or None,
        llm_model=os.environ.get("PROOFLINE_LLM_MODEL") or None,
        llm_base_url=os.environ.get("PROOFLINE_LLM_BASE_URL") or None,
        llm_timeout=_float_env("PROOFLINE_LLM_TIMEOUT", 20.0),
    )
