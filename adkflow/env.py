"""Locating and loading ``.env`` files for agent modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

__all__ = ["find_upwards", "load_dotenv_for_agent"]

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILENAME = ".env"

PathLike = Union[str, Path]


def find_upwards(folder: PathLike, filename: str) -> Optional[Path]:
    """Search *folder* and its ancestors for a regular file named *filename*.

    Returns the first match, or None once the filesystem root has been checked.
    """
    current = Path(folder)
    for candidate_dir in (current, *current.parents):
        candidate = candidate_dir / filename
        if candidate.is_file():
            return candidate
    return None


def load_dotenv_for_agent(
    agent_name: str,
    agent_parent_folder: PathLike,
    filename: str = DEFAULT_ENV_FILENAME,
) -> Optional[Path]:
    """Load the nearest env file at or above ``agent_parent_folder/agent_name``.

    Variables already set in the environment are left untouched. Returns the
    path of the loaded file, or None if no file was found or it could not be read.
    """
    filename = filename or DEFAULT_ENV_FILENAME
    starting_folder = (Path(agent_parent_folder) / agent_name).absolute()

    dotenv_path = find_upwards(starting_folder, filename)
    if dotenv_path is None:
        logger.info("No %s file found for %s", filename, agent_name)
        return None

    try:
        load_dotenv(dotenv_path, override=False)
    except OSError as exc:
        logger.warning("Error loading %s file for %s: %s", filename, agent_name, exc)
        return None

    logger.info("Loaded %s file for %s at %s", filename, agent_name, dotenv_path)
    return dotenv_path