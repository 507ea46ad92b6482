"""
Wire models for the JSON payloads exchanged with the Horizon backend.

Field names follow the server's JSON; Python attribute names are snake_case
with aliases where the two differ.
"""

from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import DecodeError


ModelT = TypeVar("ModelT", bound=BaseModel)


class WireModel(BaseModel):
    """Base for wire payloads: populate by name or alias, ignore unknown keys."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def decode_model(model: Type[ModelT], data: Any) -> ModelT:
    """Validate a parsed JSON value, raising DecodeError on mismatch."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"invalid {model.__name__}: {e.error_count()} error(s)") from e


# =============================================================================
# Streaming responses
# =============================================================================

class StreamResponse(WireModel):
    """Atomic update carrying the full current text of a response."""
    content: str
    is_complete: bool = Field(alias="isComplete")


# =============================================================================
# Assist chat
# =============================================================================

class MessageMetadata(WireModel):
    """Screen context attached to a user turn."""
    ocr_text: Optional[str] = Field(default=None, alias="ocrText")
    selected_text: Optional[str] = Field(default=None, alias="selectedText")


class AssistMessage(WireModel):
    role: str
    content: str
    metadata: Optional[MessageMetadata] = None


class AssistRequest(WireModel):
    """Full conversation plus side-channel payload sent on every turn."""
    messages: List[AssistMessage]
    image_bytes: Optional[str] = Field(default=None, alias="imageBytes")  # base64
    smarter_analysis_enabled: bool = Field(default=False, alias="smarterAnalysisEnabled")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Tags
# =============================================================================

class Tag(WireModel):
    uniqueid: str
    name: str
    color: str


class TagData(WireModel):
    """Tag payload of an update; deletions may carry only the id."""
    uniqueid: str
    name: Optional[str] = None
    color: Optional[str] = None

    def to_tag(self) -> Optional[Tag]:
        if self.name is None or self.color is None:
            return None
        return Tag(uniqueid=self.uniqueid, name=self.name, color=self.color)


class TagUpdate(WireModel):
    """Tagged update pushed on the tag channel."""
    type: str
    action: Optional[str] = None  # "created", "updated", "deleted"
    data: Optional[TagData] = None
    timestamp: Optional[str] = None
    status: Optional[str] = None  # connection messages only
    tenant_name: Optional[str] = None


class TagListResponse(WireModel):
    results: List[Tag] = Field(default_factory=list)


# =============================================================================
# Context search
# =============================================================================

class ContextSearchRequest(WireModel):
    screen_ocr: str
    tenant_name: str

    def to_wire(self) -> dict:
        return self.model_dump()


class ContextNote(WireModel):
    """
    A note returned by context search.

    The backend sends either flat notes or notes whose fields are nested
    under "properties"; both shapes are accepted.
    """
    uniqueid: str
    title: str
    content: str
    file_path: str = Field(default="", alias="filePath")
    tags: List[Tag] = Field(default_factory=list)
    created: int = 0
    last_modified: int = Field(default=0, alias="lastModified")
    tag_ids: List[str] = Field(default_factory=list, alias="tagIds")
    incoming_connections: List[str] = Field(default_factory=list, alias="incomingConnections")
    outgoing_connections: List[str] = Field(default_factory=list, alias="outgoingConnections")
    file_type: Optional[str] = Field(default=None, alias="fileType")
    note_type: Optional[str] = Field(default=None, alias="noteType")

    @model_validator(mode="before")
    @classmethod
    def _flatten_properties(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("properties"), dict):
            flat = {k: v for k, v in data.items() if k != "properties"}
            flat.update(data["properties"])
            return flat
        return data


class ContextSearchResponse(WireModel):
    results: List[ContextNote]
    search_queries_used: Optional[List[str]] = None
    sentence_chunks_used: Optional[List[str]] = None
    total_results: int


class SearchError(WireModel):
    """Error payload sent instead of a search response."""
    error: str
