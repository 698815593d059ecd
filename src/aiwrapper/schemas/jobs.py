"""Type-safe job payload definitions."""

from pydantic import BaseModel, Field, HttpUrl
from typing import Optional, List, Literal, Union, Annotated

ProviderName = Literal["openai", "anthropic", "google", "ollama"]


class TextJobInput(BaseModel):
    """Inline text submitted for analysis."""
    type: Literal["text"] = "text"
    text: str = Field(min_length=1)
    storage_url: Optional[HttpUrl] = Field(default=None, alias="storageUrl")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "type": "text",
                "text": "Summarize the indemnification clause below...",
            }
        }


class PdfJobInput(BaseModel):
    """PDF document fetched from storage before analysis."""
    type: Literal["pdf"] = "pdf"
    storage_url: HttpUrl = Field(alias="storageUrl")
    text: Optional[str] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "type": "pdf",
                "storageUrl": "https://storage.example.com/contracts/msa.pdf",
            }
        }


JobInput = Annotated[Union[TextJobInput, PdfJobInput], Field(discriminator="type")]


class RagOptions(BaseModel):
    enabled: Optional[bool] = None
    store_input_as_docs: Optional[bool] = Field(default=None, alias="storeInputAsDocs")
    store_input: Optional[bool] = Field(default=None, alias="storeInput")
    top_k: Optional[int] = Field(default=None, ge=1, le=20, alias="topK")

    class Config:
        populate_by_name = True


class JobOptions(BaseModel):
    """Per-job generation options; every field falls back to a vertical or route default."""
    rag: Optional[RagOptions] = None
    preferred_providers: Optional[List[ProviderName]] = Field(
        default=None, min_length=1, max_length=3, alias="preferredProviders"
    )
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=64, le=8192, alias="maxTokens")
    timeout_ms: Optional[int] = Field(default=None, ge=1000, le=300000, alias="timeoutMs")
    locale: Optional[str] = None

    class Config:
        populate_by_name = True


class PersistedJobInput(BaseModel):
    """Shape of the `input` column on a job row."""
    input: JobInput
    options: Optional[JobOptions] = None


class QueuePayload(BaseModel):
    """Job payload admitted to the analysis queue."""
    db_job_id: str = Field(alias="dbJobId", pattern=r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
    runtime_input: Optional[JobInput] = Field(default=None, alias="runtimeInput")
    timeout_ms: Optional[int] = Field(default=None, ge=1000, le=300000, alias="timeoutMs")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "dbJobId": "3f0b6a2e-6a55-4b8e-9a0e-2f4c1d7e8b90",
                "timeoutMs": 60000,
            }
        }

    def to_message(self) -> dict:
        """Serialize for the broker using the wire field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
