"""Where downloaded scaffold archives end up on this machine."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from mashup.shared.errors import ErrorInfo, ErrorKind, MashupServiceError

logger = logging.getLogger(__name__)


class LocalSaveSink(Protocol):
    """Persists a received blob under a suggested filename."""

    async def save(self, data: bytes, filename: str) -> Path: ...


class DirectorySaveSink:
    """Writes archives into a directory, creating it on first use.

    An existing file with the same name gets a numeric suffix
    (``my-app.zip`` → ``my-app-1.zip``) rather than being overwritten.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _target(self, filename: str) -> Path:
        # Only the final path component is honored.
        name = Path(filename).name or "mashup.zip"
        candidate = self.directory / name
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{stem}-{counter}{suffix}"
            counter += 1
        return candidate

    def _write(self, data: bytes, filename: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self._target(filename)
        target.write_bytes(data)
        return target

    async def save(self, data: bytes, filename: str) -> Path:
        """Write ``data`` off the event loop and return the final path.

        Raises ``MashupServiceError`` (kind ``local``) if the write fails.
        """
        loop = asyncio.get_running_loop()
        try:
            path = await loop.run_in_executor(None, self._write, data, filename)
        except OSError as exc:
            logger.warning("Could not save %s to %s: %s", filename, self.directory, exc)
            raise MashupServiceError(ErrorInfo(
                kind=ErrorKind.LOCAL,
                code="SAVE_FAILED",
                message=f"Could not save {filename}: {exc.strerror or exc}",
                details=str(self.directory),
            )) from exc
        logger.info("Saved %d bytes to %s", len(data), path)
        return path
