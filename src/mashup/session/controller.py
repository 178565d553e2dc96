"""MashupSession — wires one SessionState into both orchestrators."""

from __future__ import annotations

import logging
from typing import Protocol

from mashup.schemas.config import ClientConfig, GenerationDefaults
from mashup.session.download import SUCCESS_DWELL_SECONDS, DownloadClient, DownloadOrchestrator
from mashup.session.generation import GenerationClient, GenerationOrchestrator
from mashup.session.state import SessionState
from mashup.shared.save_sink import DirectorySaveSink, LocalSaveSink

logger = logging.getLogger(__name__)


class SessionClient(GenerationClient, DownloadClient, Protocol):
    """Anything that can both generate and download (real or dry-run client)."""


class MashupSession:
    """One user session: a fresh SessionState plus the two orchestrators that own it.

    The presentation layer reads ``session.state`` and calls the action
    methods below; nothing else writes the state.
    """

    def __init__(
        self,
        client: SessionClient,
        sink: LocalSaveSink,
        *,
        defaults: GenerationDefaults | None = None,
        success_dwell: float = SUCCESS_DWELL_SECONDS,
    ) -> None:
        self.state = SessionState()
        self.generation = GenerationOrchestrator(self.state, client, defaults=defaults)
        self.downloads = DownloadOrchestrator(self.state, client, sink, success_dwell=success_dwell)

    @classmethod
    def from_config(cls, config: ClientConfig, client: SessionClient) -> "MashupSession":
        return cls(
            client,
            DirectorySaveSink(config.download_directory),
            defaults=config.generation,
            success_dwell=config.success_dwell_seconds,
        )

    async def __aenter__(self) -> "MashupSession":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def generate(self) -> None:
        await self.generation.generate()

    async def regenerate(self) -> None:
        await self.generation.regenerate()

    async def generate_custom(self, api_ids: list[str]) -> None:
        await self.generation.generate_custom(api_ids)

    async def download(self) -> None:
        await self.downloads.download()

    def clear_error(self) -> None:
        self.state.clear_error()

    async def aclose(self) -> None:
        await self.downloads.aclose()
        logger.debug("Session closed")
