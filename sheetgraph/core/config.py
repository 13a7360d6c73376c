"""Configuration loaded from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import MAX_HISTORY_SIZE, SESSION_TTL_SECONDS


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SheetGraphConfig:
    """Spreadsheet graph service configuration."""
    history_size: int = MAX_HISTORY_SIZE
    cache_dir: Path = Path.home() / ".sheetgraph/cache"
    cache_max_bytes: int | None = None
    session_ttl: int = SESSION_TTL_SECONDS
    analyzer_url: str | None = None
    translator_url: str | None = None
    collaborator_timeout: float = 120.0
    repair_graphs: bool = True
    cleanup_interval: float = 300.0  # seconds between expired-session sweeps

    @classmethod
    def from_env(cls) -> "SheetGraphConfig":
        """Create configuration from environment variables."""
        max_bytes = os.getenv("SG_CACHE_MAX_BYTES")
        return cls(
            history_size=int(os.getenv("SG_HISTORY_SIZE", str(MAX_HISTORY_SIZE))),
            cache_dir=Path(os.getenv("SG_CACHE_DIR", str(cls.cache_dir))),
            cache_max_bytes=int(max_bytes) if max_bytes else None,
            session_ttl=int(os.getenv("SG_SESSION_TTL", str(SESSION_TTL_SECONDS))),
            analyzer_url=os.getenv("SG_ANALYZER_URL") or None,
            translator_url=os.getenv("SG_TRANSLATOR_URL") or None,
            collaborator_timeout=float(os.getenv("SG_COLLABORATOR_TIMEOUT", "120")),
            repair_graphs=_env_flag("SG_REPAIR_GRAPHS", True),
            cleanup_interval=float(os.getenv("SG_CLEANUP_INTERVAL", "300")),
        )
