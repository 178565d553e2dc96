"""Async HTTP wrapper around the remote Mashup service.

Every transport or server failure leaves this module as a
``MashupServiceError`` carrying a normalized ``ErrorInfo``; callers never
see raw ``httpx`` exceptions.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
import uuid
import zipfile
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from mashup.schemas.chat import ChatbotStatus, ChatMessage, ChatRequest, ChatResponse
from mashup.schemas.config import ClientConfig
from mashup.schemas.mashup import (
    APIDescriptor,
    AppIdea,
    CodePreview,
    ComponentSuggestion,
    FileStructure,
    FlowStep,
    GenerateOptions,
    InteractionFlow,
    MashupArtifact,
    Screen,
    UILayout,
)
from mashup.schemas.registry import CategoryListing, RegistryListing
from mashup.shared.errors import ErrorInfo, ErrorKind, MashupServiceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_BASE_URL = "http://localhost:3000/api"
DEFAULT_TIMEOUT = 30.0  # seconds; generation runs an LLM pipeline server-side


def _validate(model: type[ModelT], data: Any) -> ModelT:
    """Validate a response payload, reporting a malformed body as a server error."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Malformed %s payload from server: %s", model.__name__, exc)
        raise MashupServiceError(ErrorInfo(
            kind=ErrorKind.SERVER,
            code="INVALID_RESPONSE",
            message=f"Server returned an unexpected {model.__name__} payload",
            details=str(exc),
        )) from exc


def _error_from_response(response: httpx.Response) -> MashupServiceError:
    """Turn a failed HTTP response into a ``MashupServiceError``.

    Uses the ``{success: false, error: {code, message, details}}`` envelope
    when the body has one; otherwise reports the bare status code.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        err = body["error"]
        return MashupServiceError.from_envelope(
            err.get("code"), err.get("message"), err.get("details"), status=response.status_code,
        )

    return MashupServiceError(ErrorInfo(
        kind=ErrorKind.SERVER,
        code="SERVER_ERROR",
        message=f"Server error: {response.status_code}",
        details=body if body is not None else response.text[:500],
    ))


class MashupServiceClient:
    """Thin async wrapper around the Mashup service REST API.

    Provides:
    - ``generate`` / ``generate_custom`` — produce a ``MashupArtifact``
    - ``download`` — fetch the scaffold ZIP bytes for an artifact
    - ``list_apis`` / ``list_categories`` — browse the API registry
    - ``chat`` / ``quick_help`` / ``chatbot_status`` — assistant pass-through

    Usage::

        async with MashupServiceClient("http://localhost:3000/api") as client:
            artifact = await client.generate()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> "MashupServiceClient":
        return cls(config.api_base_url, timeout=config.request_timeout)

    async def __aenter__(self) -> "MashupServiceClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request; no reply at all becomes a connectivity error."""
        logger.debug("%s %s", method, url)
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            # Covers connect failures, timeouts and dropped connections.
            logger.warning("No response for %s %s: %s", method, url, exc)
            raise MashupServiceError.connectivity(details=str(exc)) from exc

        if response.is_error:
            err = _error_from_response(response)
            logger.warning(
                "%s %s failed with HTTP %d (%s): %s",
                method, url, response.status_code, err.code, err,
            )
            raise err
        return response

    async def _send_for_data(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and unwrap the ``{success, data}`` envelope."""
        response = await self._send(method, url, **kwargs)
        try:
            body = response.json()
        except ValueError as exc:
            raise MashupServiceError(ErrorInfo(
                kind=ErrorKind.SERVER,
                code="INVALID_RESPONSE",
                message="Server returned a non-JSON response",
                details=response.text[:500],
            )) from exc

        if not isinstance(body, dict):
            raise MashupServiceError(ErrorInfo(
                kind=ErrorKind.SERVER,
                code="INVALID_RESPONSE",
                message="Server returned an unexpected response shape",
            ))
        if not body.get("success"):
            err = body.get("error") or {}
            raise MashupServiceError.from_envelope(
                err.get("code"),
                err.get("message") or "Request was not successful",
                err.get("details"),
                status=response.status_code,
            )
        return body.get("data")

    def _download_path(self, download_url: str) -> str:
        """Map a server-relative download URL onto this client's base URL.

        The service hands out ``/api/mashup/download/<file>.zip``; when the
        base URL already ends in ``/api`` the prefix must not be doubled.
        """
        if download_url.startswith(("http://", "https://")):
            return download_url
        base_path = httpx.URL(self.base_url).path.rstrip("/")
        if base_path.endswith("/api") and download_url.startswith("/api/"):
            return download_url[len("/api"):]
        return download_url

    # ------------------------------------------------------------------
    # Mashup endpoints
    # ------------------------------------------------------------------

    async def generate(self, options: GenerateOptions | None = None) -> MashupArtifact:
        """``POST /mashup/generate`` — random selection, honoring ``options``."""
        payload: dict[str, Any] = {}
        if options is not None:
            wire = options.to_wire()
            if wire:
                payload["options"] = wire
        data = await self._send_for_data("POST", "/mashup/generate", json=payload)
        return _validate(MashupArtifact, data)

    async def generate_custom(self, api_ids: list[str]) -> MashupArtifact:
        """``POST /mashup/generate-custom`` — build from the given API ids."""
        data = await self._send_for_data(
            "POST", "/mashup/generate-custom", json={"apiIds": list(api_ids)},
        )
        return _validate(MashupArtifact, data)

    async def download(self, download_url: str) -> bytes:
        """``GET /mashup/download/:filename`` — return the ZIP archive bytes."""
        response = await self._send("GET", self._download_path(download_url))
        return response.content

    # ------------------------------------------------------------------
    # Registry endpoints
    # ------------------------------------------------------------------

    async def list_apis(
        self, *, category: str | None = None, auth_type: str | None = None,
    ) -> RegistryListing:
        params = {}
        if category:
            params["category"] = category
        if auth_type:
            params["authType"] = auth_type
        data = await self._send_for_data("GET", "/registry/apis", params=params)
        return _validate(RegistryListing, data)

    async def list_categories(self) -> CategoryListing:
        data = await self._send_for_data("GET", "/registry/categories")
        return _validate(CategoryListing, data)

    # ------------------------------------------------------------------
    # Assistant chatbot
    # ------------------------------------------------------------------

    async def chat(self, request: ChatRequest) -> ChatResponse:
        data = await self._send_for_data(
            "POST", "/chatbot/chat",
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        return _validate(ChatResponse, data)

    async def quick_help(self, topic: str) -> str:
        data = await self._send_for_data("GET", f"/chatbot/quick-help/{topic}")
        if not isinstance(data, dict) or "help" not in data:
            raise MashupServiceError(ErrorInfo(
                kind=ErrorKind.SERVER,
                code="INVALID_RESPONSE",
                message="Server returned no help text",
            ))
        return str(data["help"])

    async def chatbot_status(self) -> ChatbotStatus:
        """Report whether the assistant is configured; never raises."""
        try:
            data = await self._send_for_data("GET", "/chatbot/status")
            return _validate(ChatbotStatus, data)
        except MashupServiceError as exc:
            logger.debug("Chatbot status check failed: %s", exc)
            return ChatbotStatus(configured=False, message="Unable to check chatbot status")


# ======================================================================
# Dry-run client — zero network calls
# ======================================================================

def _api(
    id: str, name: str, category: str, description: str, *,
    auth_type: str = "none", cors: bool = True,
) -> APIDescriptor:
    return APIDescriptor(
        id=id,
        name=name,
        description=description,
        category=category,
        base_url=f"https://api.example.com/{id}",
        sample_endpoint="/v1/sample",
        auth_type=auth_type,
        cors_compatible=cors,
        mock_data={"sample": True} if auth_type != "none" else None,
        documentation_url=f"https://docs.example.com/{id}",
    )


_DRY_RUN_REGISTRY: list[APIDescriptor] = [
    _api("open-meteo", "Open-Meteo", "Weather", "Free weather forecasts without a key"),
    _api("spotify", "Spotify Web API", "Music", "Tracks, playlists and audio features", auth_type="oauth", cors=False),
    _api("osm-nominatim", "Nominatim", "Maps", "Geocoding on OpenStreetMap data"),
    _api("newsapi", "NewsAPI", "News", "Headlines from thousands of sources", auth_type="apikey", cors=False),
    _api("tmdb", "TMDB", "Movies", "Movie and TV metadata", auth_type="apikey"),
    _api("pokeapi", "PokeAPI", "Games", "Everything about Pokemon"),
    _api("weatherapi", "WeatherAPI", "Weather", "Realtime weather and astronomy", auth_type="apikey"),
    _api("musicbrainz", "MusicBrainz", "Music", "Open music encyclopedia"),
    _api("rest-countries", "REST Countries", "Geography", "Country facts and flags"),
]

_MASHUP_SIZE = 3


class DryRunServiceClient:
    """Drop-in replacement for MashupServiceClient that makes zero network calls.

    Picks APIs from a small canned registry (one per category, skipping
    excluded ids) and builds a deterministic artifact from them, so the full
    generate / regenerate / download loop can be exercised offline. Only the
    most recently built archive is kept for download.
    """

    def __init__(self, *, delay: float = 0.0) -> None:
        self.delay = delay
        self._archives: dict[str, bytes] = {}

    async def __aenter__(self) -> "DryRunServiceClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._archives.clear()

    async def _pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    # ------------------------------------------------------------------
    # Mashup endpoints
    # ------------------------------------------------------------------

    async def generate(self, options: GenerateOptions | None = None) -> MashupArtifact:
        await self._pause()
        options = options or GenerateOptions()
        excluded_ids = set(options.exclude_api_ids or [])
        excluded_categories = set(options.exclude_categories or [])

        candidates = [
            api for api in _DRY_RUN_REGISTRY
            if api.id not in excluded_ids
            and api.category not in excluded_categories
            and (not options.cors_only or api.cors_compatible)
            and (not options.require_auth or api.auth_type != "none")
        ]
        if len(candidates) < _MASHUP_SIZE:
            raise MashupServiceError.from_envelope(
                "INSUFFICIENT_APIS",
                f"Insufficient APIs available. Need {_MASHUP_SIZE}, but only "
                f"{len(candidates)} available after filtering.",
                {"required": _MASHUP_SIZE, "available": len(candidates)},
                status=400,
            )

        selected: list[APIDescriptor] = []
        seen_categories: set[str] = set()
        for api in candidates:
            if api.category in seen_categories:
                continue
            selected.append(api)
            seen_categories.add(api.category)
            if len(selected) == _MASHUP_SIZE:
                break

        if len(selected) < _MASHUP_SIZE:
            raise MashupServiceError.from_envelope(
                "INSUFFICIENT_CATEGORIES",
                f"Insufficient categories available. Need {_MASHUP_SIZE} different "
                f"categories, but only {len(seen_categories)} available after filtering.",
                {"required": _MASHUP_SIZE, "available": len(seen_categories)},
                status=400,
            )

        return self._build_artifact(selected)

    async def generate_custom(self, api_ids: list[str]) -> MashupArtifact:
        await self._pause()
        if not api_ids or len(api_ids) > _MASHUP_SIZE:
            raise MashupServiceError.from_envelope(
                "INVALID_REQUEST",
                f"apiIds must contain between 1 and {_MASHUP_SIZE} ids",
                status=400,
            )
        by_id = {api.id: api for api in _DRY_RUN_REGISTRY}
        selected = []
        for api_id in api_ids:
            if api_id not in by_id:
                raise MashupServiceError.from_envelope(
                    "API_NOT_FOUND", f'API with id "{api_id}" not found', {"apiId": api_id}, status=404,
                )
            selected.append(by_id[api_id])
        return self._build_artifact(selected)

    async def download(self, download_url: str) -> bytes:
        await self._pause()
        filename = download_url.rsplit("/", 1)[-1]
        if filename not in self._archives:
            raise MashupServiceError.from_envelope(
                "FILE_NOT_FOUND", f"File not found: {filename}", {"filename": filename}, status=404,
            )
        return self._archives[filename]

    # ------------------------------------------------------------------
    # Registry endpoints
    # ------------------------------------------------------------------

    async def list_apis(
        self, *, category: str | None = None, auth_type: str | None = None,
    ) -> RegistryListing:
        apis = _DRY_RUN_REGISTRY
        if category:
            apis = [api for api in apis if api.category == category]
        if auth_type:
            apis = [api for api in apis if api.auth_type == auth_type]
        return RegistryListing(apis=apis, count=len(apis))

    async def list_categories(self) -> CategoryListing:
        counts: dict[str, int] = {}
        for api in _DRY_RUN_REGISTRY:
            counts[api.category] = counts.get(api.category, 0) + 1
        return CategoryListing(
            categories=sorted(counts),
            category_data=counts,
            total_categories=len(counts),
        )

    # ------------------------------------------------------------------
    # Assistant chatbot
    # ------------------------------------------------------------------

    async def chat(self, request: ChatRequest) -> ChatResponse:
        reply = "[dry-run] The assistant is not connected. "
        if request.project_context is not None:
            reply += f"Your project is {request.project_context.idea.app_name}."
        history = [
            *request.conversation_history,
            ChatMessage(role="user", content=request.message),
            ChatMessage(role="assistant", content=reply),
        ]
        return ChatResponse(message=reply, conversation_history=history)

    async def quick_help(self, topic: str) -> str:
        return f"[dry-run] No quick help available for '{topic}'."

    async def chatbot_status(self) -> ChatbotStatus:
        return ChatbotStatus(configured=False, message="Dry-run mode: assistant disabled")

    # ------------------------------------------------------------------
    # Canned artifact
    # ------------------------------------------------------------------

    def _build_artifact(self, apis: list[APIDescriptor]) -> MashupArtifact:
        mashup_id = uuid.uuid4().hex
        app_name = " ".join(api.name.split()[0] for api in apis) + " Hub"
        filename = f"mashup-{mashup_id[:12]}.zip"

        artifact = MashupArtifact(
            id=mashup_id,
            idea=AppIdea(
                app_name=app_name,
                description=f"Combines {', '.join(api.name for api in apis)} into one dashboard.",
                features=[f"Browse {api.category.lower()} data from {api.name}" for api in apis],
                rationale="These APIs cover unrelated categories, so their data rarely meets.",
                apis=apis,
            ),
            ui_layout=UILayout(
                screens=[
                    Screen(name="Home", description="Overview of all sources", components=["card"]),
                    Screen(name="Detail", description="Drill into a single item", components=["list"]),
                ],
                components=[
                    ComponentSuggestion(type="card", purpose=f"Show {api.name} results", api_source=api.id)
                    for api in apis
                ],
                interaction_flow=InteractionFlow(steps=[
                    FlowStep(from_="Home", to="Detail", action="Select an item"),
                    FlowStep(from_="Detail", to="Home", action="Go back"),
                ]),
            ),
            code_preview=CodePreview(
                backend_snippet="// server.ts\napp.get('/api/data', handler);",
                frontend_snippet="// App.tsx\nexport default function App() { return null; }",
                structure=FileStructure(name="project", type="directory", children=[
                    FileStructure(name="README.md", type="file"),
                ]),
            ),
            download_url=f"/api/mashup/download/{filename}",
            timestamp=int(time.time() * 1000),
        )

        # Only the latest artifact stays downloadable; older archives are dropped.
        self._archives = {filename: _zip_readme(artifact)}
        logger.info("[dry-run] Generated %s from %s", app_name, artifact.idea.api_ids)
        return artifact


def _zip_readme(artifact: MashupArtifact) -> bytes:
    """Build an in-memory ZIP with a README describing the artifact."""
    from mashup.output.markdown import render_markdown

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("README.md", render_markdown(artifact))
    return buffer.getvalue()
