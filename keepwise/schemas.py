"""
Payload schemas for the save flow.

Forms post camelCase keys (personalNotes); both spellings are accepted.
Blank optional text is treated as absent so that an empty form field never
overwrites a value with "".
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import Priority

_URL = TypeAdapter(AnyUrl)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _check_url(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("URL is required")
    value = value.strip()
    # Validate with pydantic but keep the caller's spelling (no trailing slash added)
    _URL.validate_python(value)
    return value


class _FormModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class _MemoryInput(_FormModel):
    title: str = Field(min_length=1, max_length=255)
    category: Optional[str] = None
    tags: Optional[str] = None
    priority: Priority = Priority.MEDIUM

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Priority.MEDIUM
        if isinstance(value, str):
            return value.strip().upper()
        return value


class LinkInput(_MemoryInput):
    url: str
    description: Optional[str] = None
    author: Optional[str] = None
    source: Optional[str] = None
    personal_notes: Optional[str] = Field(default=None, alias="personalNotes")

    @field_validator("url", mode="before")
    @classmethod
    def _valid_url(cls, value: Any) -> str:
        return _check_url(value)


class AttachmentInput(_FormModel):
    name: str = Field(min_length=1)
    url: str
    type: str = "application/octet-stream"
    size: int = Field(default=0, ge=0)

    @field_validator("url", mode="before")
    @classmethod
    def _valid_url(cls, value: Any) -> str:
        return _check_url(value)


class IdeaInput(_MemoryInput):
    content: str = Field(min_length=1)
    # None means "leave existing attachments alone" on update
    attachments: Optional[List[AttachmentInput]] = None


class MetadataRequest(BaseModel):
    url: str

    @field_validator("url", mode="before")
    @classmethod
    def _valid_url(cls, value: Any) -> str:
        return _check_url(value)


def field_errors(exc: PydanticValidationError) -> Dict[str, str]:
    """Flatten pydantic errors into {"field.path": "message"}."""
    errors: Dict[str, str] = {}
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ())) or "__root__"
        message = error.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(loc, message)
    return errors


def validate_payload(model: Type[ModelT], payload: Optional[Mapping[str, Any]]) -> ModelT:
    """Validate a raw form/JSON payload, raising the package ValidationError."""
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid input", {"__root__": "Expected an object"})
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError("Invalid input", field_errors(e)) from e
