from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

MAX_TEXT_LENGTH = 5000

# Error codes returned by the HTTP boundary
INVALID_INPUT = "INVALID_INPUT"
EMPTY_TEXT = "EMPTY_TEXT"
TEXT_TOO_LONG = "TEXT_TOO_LONG"
INVALID_MODELS = "INVALID_MODELS"
VALIDATION_CODES = (INVALID_INPUT, EMPTY_TEXT, TEXT_TOO_LONG, INVALID_MODELS)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class AdapterKind(str, Enum):
    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"


class ModelDescriptor(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    provider: AdapterKind
    model: str
    display_name: str = ""

    def label(self) -> str:
        return self.display_name or f"{self.provider.value} - {self.model}"


class Highlight(CamelModel):
    """
    A span as the model reported it. Offsets the model got wrong or left out
    become None here; highlights.normalize_highlights relocates or drops them.
    """
    text: str = ""
    reason: str = ""
    start: Optional[int] = None
    end: Optional[int] = None

    @field_validator("text", "reason", mode="before")
    @classmethod
    def validate_strings(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("start", "end", mode="before")
    @classmethod
    def validate_offset(cls, value):
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None


class EmotionAnalysis(CamelModel):
    summary: List[str] = []
    highlights: List[Highlight] = []

    @field_validator("highlights", mode="before")
    @classmethod
    def validate_highlights(cls, highlights):
        # A malformed entry costs only itself, not the whole analysis
        if not isinstance(highlights, list):
            return []
        return [h for h in highlights if isinstance(h, (dict, Highlight))]


class RewriteVariant(CamelModel):
    text: str
    explanation: str = ""


class AnalysisPayload(CamelModel):
    """The part of the answer every model is asked to produce."""
    emotions: EmotionAnalysis
    grey_rock: RewriteVariant
    yellow_rock: RewriteVariant


class ProviderAnalysis(AnalysisPayload):
    provider: str
    model: str


class ModelSuccess(ProviderAnalysis):
    model_id: str
    display_name: str


class ModelFailure(CamelModel):
    model_id: str
    display_name: str
    error: str
    provider: Optional[str] = None
    model: Optional[str] = None
    retryable: bool = False


ModelResult = Union[ModelSuccess, ModelFailure]


class AnalysisResponse(CamelModel):
    original: str
    results: List[ModelResult]


class SingleAnalysisResponse(CamelModel):
    original: str
    result: ModelSuccess


class ModelsResponse(CamelModel):
    models: List[ModelDescriptor]


class ErrorResponse(BaseModel):
    error: bool = True
    message: str
    code: str


def _check_text(text: Any) -> str:
    if not isinstance(text, str):
        raise PydanticCustomError(INVALID_INPUT, "Text is required and must be a string")
    if not text.strip():
        raise PydanticCustomError(EMPTY_TEXT, "Text cannot be empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise PydanticCustomError(
            TEXT_TOO_LONG,
            "Text exceeds maximum length ({max_length} characters)",
            {"max_length": MAX_TEXT_LENGTH},
        )
    return text


class AnalyzeRequest(BaseModel):
    text: str = Field(
        ...,
        description="Message to analyze",
        examples=["You never listen to me!"]
    )
    models: Optional[List[str]] = Field(
        default=None,
        description="Model ids to run, in the order results should come back",
        examples=[["claude-sonnet-4", "gpt-4o-mini"]]
    )

    @field_validator("text", mode="before")
    @classmethod
    def validate_text(cls, text):
        return _check_text(text)

    @field_validator("models", mode="before")
    @classmethod
    def validate_models(cls, models):
        if models is None:
            return None
        if not isinstance(models, list) or not all(isinstance(m, str) for m in models):
            raise PydanticCustomError(INVALID_MODELS, "Models must be an array")
        return models


class SingleAnalyzeRequest(BaseModel):
    text: str = Field(..., description="Message to analyze")
    model: Optional[str] = Field(default=None, description="Model id, defaults to the service default")

    @field_validator("text", mode="before")
    @classmethod
    def validate_text(cls, text):
        return _check_text(text)

    @field_validator("model", mode="before")
    @classmethod
    def validate_model(cls, model):
        if model is not None and not isinstance(model, str):
            raise PydanticCustomError(INVALID_MODELS, "Model must be a string")
        return model


def validation_failure(exc: ValidationError) -> ErrorResponse:
    """Turn the first validation error into the boundary's error body."""
    errors = exc.errors()
    if not errors:
        return ErrorResponse(message="Invalid request", code=INVALID_INPUT)
    first = errors[0]
    if first["type"] in VALIDATION_CODES:
        return ErrorResponse(message=first["msg"], code=first["type"])
    return ErrorResponse(message="Text is required and must be a string", code=INVALID_INPUT)
