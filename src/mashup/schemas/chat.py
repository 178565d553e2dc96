"""Pydantic models for the assistant chatbot endpoints."""

from __future__ import annotations

import time
from typing import Literal

from pydantic import Field

from mashup.schemas.mashup import MashupArtifact, WireModel


class ChatMessage(WireModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


class ErrorContext(WireModel):
    """A build or runtime error the user wants help with."""

    error_message: str
    stack_trace: str | None = None
    file_name: str | None = None
    line_number: int | None = None


class ChatRequest(WireModel):
    message: str
    conversation_history: list[ChatMessage] = []
    project_context: MashupArtifact | None = None
    error_context: ErrorContext | None = None


class ChatResponse(WireModel):
    message: str
    conversation_history: list[ChatMessage] = []


class ChatbotStatus(WireModel):
    configured: bool = False
    message: str = ""
