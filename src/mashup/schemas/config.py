"""Configuration schema — validates mashup-config.yml."""

from pydantic import BaseModel, field_validator, model_validator

from mashup.schemas.mashup import GenerateOptions


class GenerationDefaults(BaseModel):
    """Constraints applied to every plain generate/regenerate request."""

    exclude_categories: list[str] = []
    cors_only: bool = False
    require_auth: bool = False

    def to_options(self, exclude_api_ids: list[str] | None = None) -> GenerateOptions:
        return GenerateOptions(
            exclude_categories=self.exclude_categories or None,
            exclude_api_ids=list(exclude_api_ids) if exclude_api_ids is not None else None,
            cors_only=self.cors_only or None,
            require_auth=self.require_auth or None,
        )


class ClientConfig(BaseModel):
    """Top-level configuration loaded from mashup-config.yml.

    Every field has a default, so an empty file (or no file) is valid.
    ``MASHUP_API_BASE_URL`` in the environment overrides ``api_base_url``.
    """

    api_base_url: str = "http://localhost:3000/api"

    # Seconds before an unanswered request is reported as a connectivity error.
    request_timeout: float = 30.0

    # Where downloaded ZIP archives are written
    download_directory: str = "./downloads"

    # How long the "download succeeded" flag stays up
    success_dwell_seconds: float = 3.0

    generation: GenerationDefaults = GenerationDefaults()

    @field_validator("api_base_url")
    @classmethod
    def check_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must be an http(s) URL, got: {value!r}")
        return value.rstrip("/")

    @model_validator(mode="after")
    def check_positive_durations(self) -> "ClientConfig":
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be greater than 0")
        if self.success_dwell_seconds <= 0:
            raise ValueError("success_dwell_seconds must be greater than 0")
        return self
