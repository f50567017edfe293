"""Process settings loaded from the environment.

Settings are read from environment variables, with a .env file loaded via
python-dotenv so local deployments can keep them next to the app.

Environment variables:
    GITCMS_DATA_ROOT: Directory holding one working copy per project (./data)
    GITCMS_GIT_TIMEOUT: Timeout for local git commands, seconds (10)
    GITCMS_NETWORK_TIMEOUT: Timeout for clone/fetch/push, seconds (120)
    GITCMS_LOCK_TIMEOUT: Wait for a busy project, seconds (60)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from src.git_integration.connection_registry import LOCK_TIMEOUT
from src.git_integration.errors import ConfigError
from src.git_integration.git_runner import GIT_NETWORK_TIMEOUT, GIT_TIMEOUT


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"must be a number, got '{raw}'", name)
    if value <= 0:
        raise ConfigError(f"must be positive, got '{raw}'", name)
    return value


@dataclass
class Settings:
    """Runtime settings for the content store."""
    data_root: Path
    git_timeout: float = GIT_TIMEOUT
    network_timeout: float = GIT_NETWORK_TIMEOUT
    lock_timeout: float = LOCK_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from the environment (and .env, if present)."""
        load_dotenv()
        return cls(
            data_root=Path(os.getenv("GITCMS_DATA_ROOT") or Path.cwd() / "data"),
            git_timeout=_float_env("GITCMS_GIT_TIMEOUT", GIT_TIMEOUT),
            network_timeout=_float_env("GITCMS_NETWORK_TIMEOUT", GIT_NETWORK_TIMEOUT),
            lock_timeout=_float_env("GITCMS_LOCK_TIMEOUT", LOCK_TIMEOUT),
        )
