from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkMetadata(BaseModel):
    """Metadata stored alongside every chunk in the vector index.

    Unknown keys are kept as-is; missing or blank known keys fall back to
    defaults instead of failing validation.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    product: str = "Unknown"
    section: str = "General"
    chunk_text: str = ""

    @field_validator("product", "section", "chunk_text", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return str(value)


class SearchMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def product(self) -> str:
        return self.metadata.product

    @property
    def section(self) -> str:
        return self.metadata.section

    @property
    def text(self) -> str:
        return self.metadata.chunk_text


class ChunkIn(BaseModel):
    id: str | None = None
    product: str
    section: str = "General"
    text: str


class IngestRequest(BaseModel):
    namespace: str | None = None
    chunks: list[ChunkIn]


class IngestResponse(BaseModel):
    namespace: str
    chunks_stored: int
    products_known: int
    message: str
