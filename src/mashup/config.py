"""YAML config loader — reads mashup-config.yml into ClientConfig."""

import os
from pathlib import Path

import yaml

from mashup.schemas.config import ClientConfig

BASE_URL_ENV = "MASHUP_API_BASE_URL"


def load_config(path: str | Path | None = None) -> ClientConfig:
    """Load and validate a client config file.

    With no path, returns the defaults. ``MASHUP_API_BASE_URL`` (if set and
    non-empty) overrides the file's ``api_base_url``.

    Raises ``FileNotFoundError`` if the path doesn't exist and
    ``pydantic.ValidationError`` if the YAML content is invalid.
    """
    raw: dict = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        loaded = yaml.safe_load(path.read_text())
        # An empty file loads as None
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"Config file must be a YAML mapping, got {type(loaded).__name__}")
        raw = loaded or {}

    # YAML loads lists with only commented-out items as None; normalize to empty list.
    generation = raw.get("generation")
    if "generation" in raw and generation is None:
        del raw["generation"]
    elif isinstance(generation, dict):
        categories = generation.get("exclude_categories")
        if categories is None:
            generation["exclude_categories"] = []
        elif isinstance(categories, list):
            generation["exclude_categories"] = [item for item in categories if item]

    env_url = os.environ.get(BASE_URL_ENV, "").strip()
    if env_url:
        raw["api_base_url"] = env_url

    return ClientConfig(**raw)
