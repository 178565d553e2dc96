"""Generation orchestrator — produces new artifacts and keeps exclusion history."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Protocol

from mashup.schemas.config import GenerationDefaults
from mashup.schemas.mashup import GenerateOptions, MashupArtifact
from mashup.session.state import NO_ERROR, SessionState, error_fields
from mashup.shared.errors import ErrorInfo, ErrorKind, MashupServiceError

logger = logging.getLogger(__name__)


class GenerationClient(Protocol):
    async def generate(self, options: GenerateOptions | None = None) -> MashupArtifact: ...

    async def generate_custom(self, api_ids: list[str]) -> MashupArtifact: ...


class GenerationOrchestrator:
    """Runs generate / regenerate / custom-generate against the service.

    At most one generation is in flight: a call made while
    ``state.is_generating`` is set returns without doing anything. Errors
    never propagate; they end up in ``state.error``.

    On failure, ``generate()`` resets the session to empty, while
    ``regenerate()`` and ``generate_custom()`` keep the previous artifact
    and its exclusion list.
    """

    def __init__(
        self,
        state: SessionState,
        client: GenerationClient,
        *,
        defaults: GenerationDefaults | None = None,
    ) -> None:
        self.state = state
        self.client = client
        self.defaults = defaults or GenerationDefaults()

    async def generate(self) -> None:
        """Request a fresh mashup with no API exclusions."""
        await self._run(
            "generate",
            lambda: self.client.generate(self.defaults.to_options()),
            keep_previous=False,
        )

    async def regenerate(self) -> None:
        """Request a mashup that avoids every API in the current one."""
        # Exclusions as recorded before this call
        excluded = list(self.state.excluded_api_ids)
        await self._run(
            "regenerate",
            lambda: self.client.generate(self.defaults.to_options(excluded)),
            keep_previous=True,
        )

    async def generate_custom(self, api_ids: list[str]) -> None:
        """Request a mashup built from the user's own selection of API ids."""
        if self.state.is_generating:
            logger.debug("generate_custom ignored: generation already in progress")
            return
        # Repeated ids collapse to their first occurrence
        selection = list(dict.fromkeys(api_id for api_id in api_ids if api_id))
        if not selection:
            self.state.update(**error_fields(ErrorInfo(
                kind=ErrorKind.PRECONDITION,
                code="EMPTY_SELECTION",
                message="Select at least one API to generate a custom mashup",
            )))
            return
        await self._run(
            "generate_custom",
            lambda: self.client.generate_custom(selection),
            keep_previous=True,
        )

    async def _run(
        self,
        label: str,
        request: Callable[[], Awaitable[MashupArtifact]],
        *,
        keep_previous: bool,
    ) -> None:
        # Check-and-set happens before the first await, so a second caller
        # on the same loop always sees the flag.
        if self.state.is_generating:
            logger.debug("%s ignored: generation already in progress", label)
            return
        self.state.update(is_generating=True, **NO_ERROR)
        logger.info("Starting %s", label)

        changes: dict[str, Any] = {}
        try:
            artifact = await request()
            changes = {
                "artifact": artifact,
                "excluded_api_ids": list(dict.fromkeys(artifact.idea.api_ids)),
            }
            logger.info("%s produced %r from %s", label, artifact.idea.app_name, artifact.idea.api_ids)
        except MashupServiceError as exc:
            logger.warning("%s failed (%s/%s): %s", label, exc.kind.value, exc.code, exc)
            changes = self._failure(exc.info, keep_previous=keep_previous)
        except Exception as exc:
            logger.exception("Unexpected error during %s", label)
            changes = self._failure(ErrorInfo(
                kind=ErrorKind.SERVER,
                code="UNKNOWN_ERROR",
                message=str(exc) or f"Failed to {label.replace('_', ' ')} mashup",
            ), keep_previous=keep_previous)
        finally:
            self.state.update(is_generating=False, **changes)

    @staticmethod
    def _failure(info: ErrorInfo, *, keep_previous: bool) -> dict[str, Any]:
        changes = error_fields(info)
        if not keep_previous:
            # A failed first generation has nothing worth keeping on screen.
            changes.update(artifact=None, excluded_api_ids=[])
        return changes
