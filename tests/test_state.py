"""Tests for SessionState and the MashupSession wiring."""

from __future__ import annotations

import logging

import pytest

from mashup.schemas.config import ClientConfig, GenerationDefaults
from mashup.session.controller import MashupSession
from mashup.session.state import NO_ERROR, SessionState, error_fields
from mashup.shared.errors import ErrorKind, MashupServiceError
from mashup.shared.save_sink import DirectorySaveSink


class TestSessionState:
    def test_initial_state(self, state: SessionState) -> None:
        assert state.artifact is None
        assert not state.is_generating
        assert not state.is_downloading
        assert not state.download_succeeded
        assert state.error is None
        assert state.excluded_api_ids == []
        assert not state.is_busy

    def test_update_notifies_once_with_all_changes(self, state: SessionState) -> None:
        seen: list[tuple[bool, str | None]] = []
        state.subscribe(lambda s: seen.append((s.is_generating, s.error)))

        state.update(is_generating=True, error="boom")

        assert seen == [(True, "boom")]

    def test_unsubscribe(self, state: SessionState) -> None:
        calls: list[SessionState] = []
        unsubscribe = state.subscribe(calls.append)

        unsubscribe()
        state.update(is_downloading=True)

        assert calls == []
        unsubscribe()  # second call is harmless

    def test_unknown_field_rejected(self, state: SessionState) -> None:
        with pytest.raises(AttributeError, match="bogus"):
            state.update(bogus=1)

    def test_failing_listener_does_not_break_update(self, state: SessionState, caplog) -> None:
        after: list[bool] = []

        def broken(_: SessionState) -> None:
            raise RuntimeError("render failed")

        state.subscribe(broken)
        state.subscribe(lambda s: after.append(s.is_generating))

        with caplog.at_level(logging.ERROR, logger="mashup.session.state"):
            state.update(is_generating=True)

        assert state.is_generating is True
        assert after == [True]
        assert "listener" in caplog.text

    def test_error_fields_and_clear(self, state: SessionState) -> None:
        err = MashupServiceError.from_envelope("INSUFFICIENT_APIS", "Not enough APIs", status=400)
        state.update(**error_fields(err.info))

        assert state.error == "Not enough APIs"
        assert state.error_kind is ErrorKind.VALIDATION
        assert state.error_code == "INSUFFICIENT_APIS"

        state.clear_error()
        assert {k: getattr(state, k) for k in NO_ERROR} == NO_ERROR

    def test_clear_error_without_error_does_not_notify(self, state: SessionState) -> None:
        calls: list[SessionState] = []
        state.subscribe(calls.append)

        state.clear_error()

        assert calls == []

    def test_snapshot_reduces_artifact_to_id(self, state: SessionState, make_artifact) -> None:
        state.update(artifact=make_artifact(["a", "b"]), excluded_api_ids=["a", "b"])

        snap = state.snapshot()

        assert "artifact" not in snap
        assert snap["artifact_id"] == "mashup-a-b"
        assert snap["excluded_api_ids"] == ["a", "b"]


class TestMashupSession:
    def test_from_config_wiring(self, mock_client, tmp_path) -> None:
        cfg = ClientConfig(
            download_directory=str(tmp_path),
            success_dwell_seconds=1.5,
            generation=GenerationDefaults(cors_only=True),
        )

        session = MashupSession.from_config(cfg, mock_client)

        assert session.generation.state is session.state
        assert session.downloads.state is session.state
        assert session.downloads.success_dwell == 1.5
        assert isinstance(session.downloads.sink, DirectorySaveSink)
        assert session.downloads.sink.directory == tmp_path

    @pytest.mark.asyncio
    async def test_generate_uses_configured_defaults(self, mock_client, mock_sink, make_artifact) -> None:
        mock_client.generate.return_value = make_artifact(["a", "b", "c"])

        async with MashupSession(
            mock_client, mock_sink, defaults=GenerationDefaults(cors_only=True),
        ) as session:
            await session.generate()

        options = mock_client.generate.await_args.args[0]
        assert options.cors_only is True
        assert options.exclude_api_ids is None
        assert session.state.excluded_api_ids == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_clear_error_delegates(self, mock_client, mock_sink) -> None:
        async with MashupSession(mock_client, mock_sink) as session:
            await session.download()
            assert session.state.error_kind is ErrorKind.PRECONDITION

            session.clear_error()
            assert session.state.error is None
