from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductItem(BaseModel):
    """A recommended product; affiliate_url is filled before it reaches a caller."""
    name: str
    affiliate_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("product name must not be empty")
        return cleaned


class Recommendations(BaseModel):
    """Materials and tools for a project; both lists are always present."""
    materials: List[ProductItem]
    tools: List[ProductItem]

    def all_items(self) -> List[ProductItem]:
        return [*self.materials, *self.tools]


class ChatMessage(BaseModel):
    """One conversation turn supplied by the caller."""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Request payload for the action-based chat API."""
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    message: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None


class ChatResponse(BaseModel):
    """Response payload shared by the live and mock paths."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    message: Optional[str] = None
    recommendations: Optional[Recommendations] = None
    recommendations_ready: Optional[bool] = Field(default=None, alias="recommendationsReady")
    error: Optional[str] = None


class EmailRequest(BaseModel):
    """Shopping-list email request; items must carry resolved links."""
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    items: List[ProductItem]
    project_title: str = Field(default="DIY Project", alias="projectTitle")
    recommendations: Optional[Recommendations] = None


class EmailResponse(BaseModel):
    """Result reported by the email collaborator."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    preview_url: Optional[str] = Field(default=None, alias="previewUrl")


class StoredMessage(BaseModel):
    """Registry copy of a conversation turn."""
    role: str
    content: str
    timestamp: float


class SessionSummary(BaseModel):
    """Lightweight thread summary for listing."""
    thread_id: str
    title: str
    updated_at: float
    mock: bool = False


class ConnectionReport(BaseModel):
    """Connectivity report for the configured assistant."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    has_api_key: bool = Field(alias="hasApiKey")
    assistant_id: str = Field(alias="assistantId")
    assistant: Optional[Dict[str, Optional[str]]] = None
    error: Optional[str] = None
