from __future__ import annotations

from pathlib import Path

import aiofiles

from herald_v1.errors import ConfigurationError
from herald_v1.services.logger_service import LoggerService


async def read_text(path: Path) -> str:
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()
    except UnicodeDecodeError as exc:
        raise ConfigurationError(f"{path} is not valid UTF-8 text") from exc


async def read_or_create(path: Path, logger: LoggerService, event: str) -> str | None:
    """
    Read a definition file, creating it empty when it does not exist yet.

    Returns None when the file had to be created.
    """

    if not path.exists():
        logger.warn(event, path=str(path))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
        return None
    return await read_text(path)
