"""
Run configuration persistence.

Stores simulation settings in a JSON file. API keys are never stored
here; they come from the environment only. MAILSIM_* environment
variables override file values.
"""

import json
import logging
import os
from pathlib import Path
from typing import Mapping, TypedDict

logger = logging.getLogger(__name__)


class Config(TypedDict, total=False):
    """Run configuration."""
    target_emails: int
    timeout_seconds: float
    tick_duration_hours: float
    events_per_tick: int
    inter_tick_delay: float
    seed: int | None
    analysis_model: str  # Provider used for thread analysis
    openrouter_model: str  # Short name behind the openrouter-cheap slot
    log_level: str


DEFAULT_CONFIG: Config = {
    "target_emails": 50,
    "timeout_seconds": 600.0,
    "tick_duration_hours": 4.0,
    "events_per_tick": 3,
    "inter_tick_delay": 0.1,
    "seed": None,
    "analysis_model": "claude-haiku",
    "openrouter_model": "deepseek-chat",
    "log_level": "INFO",
}

ENV_PREFIX = "MAILSIM_"


def get_config_path(base_dir: Path | str = ".") -> Path:
    """Get path to config file."""
    return Path(base_dir) / ".mailsim_config.json"


def _coerce(key: str, raw: str):
    """Parse an environment string to the type of the key's default."""
    default = DEFAULT_CONFIG.get(key)
    if key == "seed":
        return int(raw) if raw.strip() else None
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def apply_env_overrides(config: Config, env: Mapping[str, str] | None = None) -> Config:
    """Overlay MAILSIM_<KEY> variables. Unparseable values are ignored."""
    env = os.environ if env is None else env
    for key in DEFAULT_CONFIG:
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None:
            continue
        try:
            config[key] = _coerce(key, raw)
        except ValueError:
            logger.warning(f"Ignoring {ENV_PREFIX}{key.upper()}={raw!r}: not a valid {key}")
    return config


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """Load config from file (or defaults), then apply environment overrides."""
    config = DEFAULT_CONFIG.copy()
    path = Path(path) if path is not None else get_config_path()

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                saved = json.load(f)
            # Merge with defaults; unknown keys are dropped
            config.update({k: v for k, v in saved.items() if k in DEFAULT_CONFIG})
        except (json.JSONDecodeError, IOError, AttributeError):
            logger.warning(f"Could not read config {path}; using defaults")
            config = DEFAULT_CONFIG.copy()

    return apply_env_overrides(config, env)


def save_config(config: Config, path: Path | str | None = None) -> bool:
    """Save config to file. Returns True on success."""
    path = Path(path) if path is not None else get_config_path()

    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except IOError:
        return False
