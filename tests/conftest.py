"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from mashup.schemas.mashup import MashupArtifact
from mashup.session.state import SessionState


def artifact_payload(api_ids: list[str], app_name: str = "Test Mashup") -> dict[str, Any]:
    """Wire-format (camelCase) artifact as the service returns it."""
    return {
        "id": f"mashup-{'-'.join(api_ids)}",
        "idea": {
            "appName": app_name,
            "description": "A test mashup",
            "features": [f"Feature from {api_id}" for api_id in api_ids],
            "rationale": "Because tests",
            "apis": [
                {
                    "id": api_id,
                    "name": api_id.title(),
                    "description": f"The {api_id} API",
                    "category": f"cat-{api_id}",
                    "baseUrl": f"https://{api_id}.example.com",
                    "sampleEndpoint": "/v1/items",
                    "authType": "none",
                    "corsCompatible": True,
                    "documentationUrl": f"https://{api_id}.example.com/docs",
                }
                for api_id in api_ids
            ],
        },
        "uiLayout": {
            "screens": [{"name": "Home", "description": "Start", "components": ["card"]}],
            "components": [{"type": "card", "purpose": "Show items", "apiSource": api_ids[0]}],
            "interactionFlow": {"steps": [{"from": "Home", "to": "Detail", "action": "tap"}]},
        },
        "codePreview": {
            "backendSnippet": "app.get('/')",
            "frontendSnippet": "<App />",
            "structure": {
                "name": "project",
                "type": "directory",
                "children": [{"name": "package.json", "type": "file"}],
            },
        },
        "downloadUrl": f"/api/mashup/download/mashup-{'-'.join(api_ids)}.zip",
        "timestamp": 1_700_000_000_000,
    }


@pytest.fixture
def make_artifact() -> Callable[..., MashupArtifact]:
    """Factory: ``make_artifact(["a", "b", "c"], app_name="...")``."""

    def _make(api_ids: list[str], app_name: str = "Test Mashup") -> MashupArtifact:
        return MashupArtifact.model_validate(artifact_payload(api_ids, app_name))

    return _make


@pytest.fixture
def state() -> SessionState:
    return SessionState()


@pytest.fixture
def mock_client() -> AsyncMock:
    """A service client double; tests set ``generate`` / ``download`` behavior."""
    client = AsyncMock()
    client.generate = AsyncMock()
    client.generate_custom = AsyncMock()
    client.download = AsyncMock(return_value=b"PK\x03\x04zip-bytes")
    return client


@pytest.fixture
def mock_sink(tmp_path: Path) -> AsyncMock:
    sink = AsyncMock()
    sink.save = AsyncMock(side_effect=lambda data, filename: tmp_path / filename)
    return sink


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        """\
api_base_url: "http://mashup.test/api"
download_directory: "{out}"
""".format(out=str(tmp_path / "downloads"))
    )
    return cfg
