"""Configuration for the budget tracker.

Values come from environment variables with defaults that suit a local
install. ``load_settings`` reads the environment once and returns an
immutable ``Settings`` that is passed to the collaborators that need it.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

DEFAULT_SAVE_DELAY = 0.5                     # seconds after the last change
DEFAULT_MAX_SNAPSHOT_BYTES = 2 * 1024 * 1024
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    snapshot_path: Path
    report_log_path: Path
    save_delay: float = DEFAULT_SAVE_DELAY
    max_snapshot_bytes: int = DEFAULT_MAX_SNAPSHOT_BYTES
    log_level: str = "INFO"


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    data_dir = Path(env.get("BUDGET_DATA_DIR", _PROJECT_ROOT / "data"))
    return Settings(
        data_dir=data_dir,
        snapshot_path=Path(env.get("BUDGET_SNAPSHOT_PATH", data_dir / "budget_state.json")),
        report_log_path=Path(env.get("BUDGET_REPORT_LOG_PATH", data_dir / "monthly_reports.json")),
        save_delay=_float(env.get("BUDGET_SAVE_DELAY"), DEFAULT_SAVE_DELAY),
        max_snapshot_bytes=_int(env.get("BUDGET_MAX_SNAPSHOT_BYTES"), DEFAULT_MAX_SNAPSHOT_BYTES),
        log_level=env.get("BUDGET_LOG_LEVEL", "INFO").upper(),
    )


def ensure_data_directories(settings: Settings) -> None:
    for directory in {settings.data_dir, settings.snapshot_path.parent, settings.report_log_path.parent}:
        directory.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("budget_core")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(h, "_budget_core", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._budget_core = True
        logger.addHandler(handler)
