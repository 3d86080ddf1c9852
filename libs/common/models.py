"""Document records shared by the index, the providers and the API."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Provenance(str, Enum):
    """Which source(s) contributed a search result."""
    LEXICAL = "lexical"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class Document(BaseModel):
    """A searchable document.

    Documents are immutable; changing one means re-upserting a new record
    with the same ``id``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique document identifier")
    title: str = Field("", description="Document title")
    content: str = Field("", description="Document body text")
    type: str = Field("", description="Document type, e.g. job_description")
    category: str = Field("", description="Document category")

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Document id cannot be blank")
        return value

    def embedding_text(self) -> str:
        """Text sent to the embedding provider for this document.

        The layout is fixed so identical documents always produce identical
        embedding requests.
        """
        return (
            f"Title: {self.title}\n"
            f"Content: {self.content}\n"
            f"Type: {self.type}\n"
            f"Category: {self.category}"
        )
