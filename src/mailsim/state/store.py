"""
World files.

Persistence is owned by the caller; the engine only hands back a final
WorldState. The CLI reads scenario files and writes the final world
with these two functions.
"""

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .schema import WorldState

logger = logging.getLogger(__name__)


def load_world_file(path: Path | str) -> WorldState:
    """
    Load a scenario file into a WorldState.

    YAML (.yaml/.yml) and JSON are both accepted; the structure is the
    JSON form of WorldState.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file does not describe a valid world
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Could not parse world file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"World file {path} must contain a mapping")

    try:
        return WorldState.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid world in {path}: {e}") from e


def save_world_file(world: WorldState, path: Path | str) -> Path:
    """Write a world as JSON. Returns the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(world.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
    logger.info(f"Saved world {world.id} to {path}")
    return path
