"""Download orchestrator — fetches the scaffold ZIP and hands it to the save sink."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from typing import Any, Protocol

from mashup.session.state import NO_ERROR, SessionState, error_fields
from mashup.shared.errors import ErrorInfo, ErrorKind, MashupServiceError
from mashup.shared.save_sink import LocalSaveSink

logger = logging.getLogger(__name__)

# Seconds the "download succeeded" flag stays up
SUCCESS_DWELL_SECONDS = 3.0

_WHITESPACE_RUN = re.compile(r"\s+")


def derive_filename(app_name: str) -> str:
    """Suggested archive name for an app: lower-case, hyphenated, ``.zip``.

    >>> derive_filename("Weather Music Navigator")
    'weather-music-navigator.zip'
    >>> derive_filename("  My   App  ")
    'my-app.zip'
    """
    slug = _WHITESPACE_RUN.sub("-", app_name.strip().lower())
    return f"{slug or 'mashup'}.zip"


class DownloadClient(Protocol):
    async def download(self, download_url: str) -> bytes: ...


class DownloadOrchestrator:
    """Downloads the current artifact and manages the transient success flag."""

    def __init__(
        self,
        state: SessionState,
        client: DownloadClient,
        sink: LocalSaveSink,
        *,
        success_dwell: float = SUCCESS_DWELL_SECONDS,
    ) -> None:
        self.state = state
        self.client = client
        self.sink = sink
        self.success_dwell = success_dwell
        self._reset_task: asyncio.Task[None] | None = None

    async def download(self) -> None:
        """Fetch the current artifact's ZIP and save it locally.

        No-op while another download is in flight. With no artifact, records
        a precondition error without contacting the service.
        """
        if self.state.is_downloading:
            logger.debug("download ignored: download already in progress")
            return
        artifact = self.state.artifact
        if artifact is None:
            self.state.update(**error_fields(ErrorInfo(
                kind=ErrorKind.PRECONDITION,
                code="NO_ARTIFACT",
                message="No mashup data available to download",
            )))
            return

        self._cancel_reset()
        self.state.update(is_downloading=True, download_succeeded=False, **NO_ERROR)
        filename = derive_filename(artifact.idea.app_name)
        logger.info("Downloading %s as %s", artifact.download_url, filename)

        changes: dict[str, Any] = {}
        try:
            data = await self.client.download(artifact.download_url)
            path = await self.sink.save(data, filename)
            changes = {"download_succeeded": True, "last_saved_path": path}
        except MashupServiceError as exc:
            logger.warning("Download failed (%s/%s): %s", exc.kind.value, exc.code, exc)
            changes = {"download_succeeded": False, **error_fields(exc.info)}
        except Exception as exc:
            logger.exception("Unexpected error during download")
            changes = {"download_succeeded": False, **error_fields(ErrorInfo(
                kind=ErrorKind.SERVER,
                code="UNKNOWN_ERROR",
                message=str(exc) or "Failed to download project",
            ))}
        finally:
            self.state.update(is_downloading=False, **changes)

        if changes.get("download_succeeded"):
            self._schedule_reset()

    def _schedule_reset(self) -> None:
        """Arm a fresh timer that lowers the success flag, replacing any older one."""
        self._cancel_reset()
        self._reset_task = asyncio.create_task(self._reset_after(self.success_dwell))

    def _cancel_reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    async def _reset_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self.state.update(download_succeeded=False)

    async def aclose(self) -> None:
        """Cancel a pending success-flag reset (used when the session ends)."""
        task = self._reset_task
        self._cancel_reset()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
