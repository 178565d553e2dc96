"""Session state — the single source of truth for the current mashup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, PrivateAttr

from mashup.schemas.mashup import MashupArtifact
from mashup.shared.errors import ErrorInfo, ErrorKind

logger = logging.getLogger(__name__)

StateListener = Callable[["SessionState"], None]
"""Called with the state after every transition."""

NO_ERROR: dict[str, Any] = {"error": None, "error_kind": None, "error_code": None}


def error_fields(info: ErrorInfo) -> dict[str, Any]:
    """State fields that record ``info`` as the last failure."""
    return {"error": info.message, "error_kind": info.kind, "error_code": info.code}


class SessionState(BaseModel):
    """Mutable state for one user session.

    Written only by the generation and download orchestrators, one
    ``update()`` per transition. Presentation code reads fields and
    ``subscribe()``s for changes; the only thing it may write is
    ``clear_error()``.
    """

    artifact: MashupArtifact | None = None
    is_generating: bool = False
    is_downloading: bool = False
    download_succeeded: bool = False

    # Last failure; cleared when the next attempt starts or on dismiss
    error: str | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None

    # API ids of the last successfully produced artifact, in artifact order
    excluded_api_ids: list[str] = []

    last_saved_path: Path | None = None

    _listeners: list[StateListener] = PrivateAttr(default_factory=list)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> None:
        """Apply all ``changes`` at once, then notify listeners."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise AttributeError(f"Unknown session fields: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(self, name, value)
        logger.debug("Session update: %s", ", ".join(sorted(changes)))
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Session listener %r failed", listener)

    def clear_error(self) -> None:
        """Dismiss the current error without retrying."""
        if self.error is not None:
            self.update(**NO_ERROR)

    @property
    def is_busy(self) -> bool:
        return self.is_generating or self.is_downloading

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict view of the observable fields (artifact reduced to its id)."""
        data = self.model_dump(exclude={"artifact"})
        data["artifact_id"] = self.artifact.id if self.artifact else None
        return data
