"""Pydantic models for the registry listing endpoints."""

from mashup.schemas.mashup import APIDescriptor, WireModel


class RegistryListing(WireModel):
    """``GET /registry/apis`` payload."""

    apis: list[APIDescriptor] = []
    count: int = 0


class CategoryListing(WireModel):
    """``GET /registry/categories`` payload."""

    categories: list[str] = []
    category_data: dict[str, int] = {}  # category -> number of APIs
    total_categories: int = 0
