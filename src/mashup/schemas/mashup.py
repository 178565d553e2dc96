"""Pydantic models for a generated mashup and the requests that produce it."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AuthType = Literal["none", "apikey", "oauth"]


class WireModel(BaseModel):
    """Base for models exchanged with the Mashup service (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class APIDescriptor(WireModel):
    """One third-party API from the service registry."""

    id: str
    name: str
    description: str = ""
    category: str = ""
    base_url: str = ""
    sample_endpoint: str = ""
    auth_type: AuthType = "none"
    cors_compatible: bool = False
    mock_data: Any = None
    documentation_url: str = ""


class AppIdea(WireModel):
    """The app concept synthesized from the selected APIs."""

    app_name: str
    description: str = ""
    features: list[str] = []
    rationale: str = ""
    apis: list[APIDescriptor] = Field(min_length=1, max_length=3)

    @property
    def api_ids(self) -> list[str]:
        return [api.id for api in self.apis]


class Screen(WireModel):
    name: str
    description: str = ""
    components: list[str] = []


class ComponentSuggestion(WireModel):
    type: Literal["card", "list", "chart", "form", "map", "player"]
    purpose: str = ""
    api_source: str = ""


class FlowStep(WireModel):
    from_: str = Field(alias="from")
    to: str
    action: str = ""


class InteractionFlow(WireModel):
    steps: list[FlowStep] = []


class UILayout(WireModel):
    """Suggested screens, components and navigation for the app."""

    screens: list[Screen] = []
    components: list[ComponentSuggestion] = []
    interaction_flow: InteractionFlow = InteractionFlow()


class FileStructure(WireModel):
    name: str
    type: Literal["file", "directory"]
    children: list[FileStructure] | None = None


class CodePreview(WireModel):
    backend_snippet: str = ""
    frontend_snippet: str = ""
    structure: FileStructure


class MashupArtifact(WireModel):
    """A complete generation result: idea, layout, code preview and download reference."""

    id: str
    idea: AppIdea
    ui_layout: UILayout = UILayout()
    code_preview: CodePreview
    download_url: str
    timestamp: int  # epoch milliseconds

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


class GenerateOptions(WireModel):
    """Optional constraints for ``POST /mashup/generate``."""

    exclude_categories: list[str] | None = None
    exclude_api_ids: list[str] | None = Field(default=None, alias="excludeAPIIds")
    cors_only: bool | None = None
    require_auth: bool | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
