"""Tests for the DownloadOrchestrator and filename derivation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from mashup.session.download import DownloadOrchestrator, derive_filename
from mashup.shared.errors import ErrorInfo, ErrorKind, MashupServiceError


class TestDeriveFilename:
    def test_spaces_become_hyphens(self) -> None:
        assert derive_filename("Weather Music Navigator") == "weather-music-navigator.zip"

    def test_runs_and_edges_collapse(self) -> None:
        assert derive_filename("  My   App  ") == "my-app.zip"

    def test_tabs_and_newlines_count_as_whitespace(self) -> None:
        assert derive_filename("Game\tNight\nPlanner") == "game-night-planner.zip"

    def test_blank_name_falls_back(self) -> None:
        assert derive_filename("   ") == "mashup.zip"

    def test_deterministic(self) -> None:
        assert derive_filename("Same Name") == derive_filename("Same Name")


class TestDownload:
    @pytest.mark.asyncio
    async def test_no_artifact_sets_error_without_request(self, state, mock_client, mock_sink) -> None:
        orch = DownloadOrchestrator(state, mock_client, mock_sink)

        await orch.download()

        mock_client.download.assert_not_called()
        mock_sink.save.assert_not_called()
        assert state.error == "No mashup data available to download"
        assert state.error_kind is ErrorKind.PRECONDITION
        assert state.is_downloading is False

    @pytest.mark.asyncio
    async def test_success_saves_with_derived_filename(self, state, mock_client, mock_sink, make_artifact, tmp_path) -> None:
        state.artifact = make_artifact(["a", "b", "c"], app_name="Weather Music Navigator")
        orch = DownloadOrchestrator(state, mock_client, mock_sink, success_dwell=10)

        await orch.download()

        mock_client.download.assert_awaited_once_with(state.artifact.download_url)
        mock_sink.save.assert_awaited_once_with(b"PK\x03\x04zip-bytes", "weather-music-navigator.zip")
        assert state.download_succeeded is True
        assert state.last_saved_path == tmp_path / "weather-music-navigator.zip"
        assert state.is_downloading is False
        assert state.error is None
        await orch.aclose()

    @pytest.mark.asyncio
    async def test_success_flag_decays_after_dwell(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        orch = DownloadOrchestrator(state, mock_client, mock_sink, success_dwell=0.05)

        await orch.download()
        assert state.download_succeeded is True

        await asyncio.sleep(0.2)
        assert state.download_succeeded is False

    @pytest.mark.asyncio
    async def test_failure_sets_error(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        mock_client.download.side_effect = MashupServiceError.from_envelope(
            "FILE_NOT_FOUND", "File not found: x.zip", status=404,
        )
        orch = DownloadOrchestrator(state, mock_client, mock_sink)

        await orch.download()

        mock_sink.save.assert_not_called()
        assert state.error == "File not found: x.zip"
        assert state.error_code == "FILE_NOT_FOUND"
        assert state.download_succeeded is False
        assert state.is_downloading is False

    @pytest.mark.asyncio
    async def test_save_failure_sets_error(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        mock_sink.save.side_effect = MashupServiceError(ErrorInfo(
            kind=ErrorKind.LOCAL, code="SAVE_FAILED", message="Could not save test.zip: disk full",
        ))
        orch = DownloadOrchestrator(state, mock_client, mock_sink)

        await orch.download()

        assert state.error_kind is ErrorKind.LOCAL
        assert state.download_succeeded is False
        assert state.is_downloading is False

    @pytest.mark.asyncio
    async def test_failure_keeps_artifact(self, state, mock_client, mock_sink, make_artifact) -> None:
        artifact = make_artifact(["a", "b", "c"])
        state.artifact = artifact
        mock_client.download.side_effect = MashupServiceError.connectivity()
        orch = DownloadOrchestrator(state, mock_client, mock_sink)

        await orch.download()

        assert state.artifact is artifact
        assert state.error_kind is ErrorKind.CONNECTIVITY

    @pytest.mark.asyncio
    async def test_second_download_while_in_flight_is_ignored(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        gate = asyncio.Event()

        async def slow_download(url):
            await gate.wait()
            return b"zip"

        mock_client.download = AsyncMock(side_effect=slow_download)
        orch = DownloadOrchestrator(state, mock_client, mock_sink, success_dwell=10)

        first = asyncio.create_task(orch.download())
        await asyncio.sleep(0)
        assert state.is_downloading is True

        await orch.download()
        assert mock_client.download.call_count == 1

        gate.set()
        await first
        assert state.download_succeeded is True
        assert mock_sink.save.await_count == 1
        await orch.aclose()

    @pytest.mark.asyncio
    async def test_new_download_clears_previous_success(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        orch = DownloadOrchestrator(state, mock_client, mock_sink, success_dwell=10)
        await orch.download()
        assert state.download_succeeded is True

        gate = asyncio.Event()

        async def slow_download(url):
            await gate.wait()
            return b"zip"

        mock_client.download = AsyncMock(side_effect=slow_download)
        second = asyncio.create_task(orch.download())
        await asyncio.sleep(0)
        assert state.is_downloading is True
        assert state.download_succeeded is False

        gate.set()
        await second
        assert state.download_succeeded is True
        await orch.aclose()

    @pytest.mark.asyncio
    async def test_new_success_replaces_pending_reset(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        orch = DownloadOrchestrator(state, mock_client, mock_sink, success_dwell=0.3)

        await orch.download()
        first_timer = orch._reset_task
        assert first_timer is not None

        await asyncio.sleep(0.15)
        await orch.download()
        second_timer = orch._reset_task
        await asyncio.sleep(0)

        assert second_timer is not first_timer
        assert first_timer.cancelled()

        # The first timer's deadline passes; the flag belongs to the second download now.
        await asyncio.sleep(0.2)
        assert state.download_succeeded is True

        await asyncio.sleep(0.25)
        assert state.download_succeeded is False

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_reset(self, state, mock_client, mock_sink, make_artifact) -> None:
        state.artifact = make_artifact(["a", "b", "c"])
        orch = DownloadOrchestrator(state, mock_client, mock_sink, success_dwell=10)
        await orch.download()
        timer = orch._reset_task

        await orch.aclose()

        assert timer.cancelled()
        assert orch._reset_task is None
