"""
API models and schemas for books and authors.

Field names are snake_case in Python and camelCase on the wire and in
MongoDB (``firstName``, ``lastPublished``), matching the stored documents.
"""

from datetime import datetime, timezone
from typing import Annotated, List, Optional, Union

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Number = Union[int, float]


def _non_negative(v):
    if v < 0:
        raise ValueError('must be greater than or equal to 0')
    return v


NonNegativeNumber = Annotated[Number, AfterValidator(_non_negative)]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """Base for models that map to stored documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class AuthorCreate(DocumentModel):
    """Fields accepted when creating an author."""
    first_name: Optional[str] = Field(None, description="Author first name")
    last_name: Optional[str] = Field(None, description="Author last name")
    bio: Optional[str] = Field(None, description="Free-form biography")


class AuthorResponse(DocumentModel):
    """Author as returned by the API."""
    id: str = Field(..., description="Unique author identifier")
    first_name: Optional[str] = Field(None, description="Author first name")
    last_name: Optional[str] = Field(None, description="Author last name")
    bio: Optional[str] = Field(None, description="Free-form biography")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "652f1b2e9d1e8a3b4c5d6e7f",
                "firstName": "Jane",
                "lastName": "Doe",
                "bio": "Writes about databases.",
            }
        }
    )


class BookFields(DocumentModel):
    """Book fields shared by create and update payloads."""
    title: Optional[str] = Field(None, description="Book title")
    year: Optional[Number] = Field(None, description="Publication year")
    description: Optional[str] = Field(None, max_length=1000, description="Book description")
    author: Optional[str] = Field(None, description="Identifier of the book's author")

    @field_validator('author')
    @classmethod
    def validate_author_id(cls, v):
        """Ensure the author reference is a well-formed ObjectId."""
        if v is not None and not ObjectId.is_valid(v):
            raise ValueError('author must be a 24-character hex ObjectId')
        return v


class BookCreate(BookFields):
    """Fields accepted when creating a book."""
    quantity: NonNegativeNumber = Field(0, description="Copies in stock")
    last_published: datetime = Field(default_factory=utc_now, description="Last publication date")

    @field_validator('quantity', mode='before')
    @classmethod
    def default_quantity(cls, v):
        """An explicit null quantity falls back to zero."""
        return 0 if v is None else v

    @field_validator('last_published', mode='before')
    @classmethod
    def default_last_published(cls, v):
        """An explicit null date falls back to the creation time."""
        return utc_now() if v is None else v


class BookUpdate(BookFields):
    """Partial update; only the fields present in the request are applied."""
    quantity: Optional[NonNegativeNumber] = Field(None, description="Copies in stock")
    last_published: Optional[datetime] = Field(None, description="Last publication date")


class BookResponse(DocumentModel):
    """Book as returned by the API, with the author expanded when resolvable."""
    id: str = Field(..., description="Unique book identifier")
    title: Optional[str] = Field(None, description="Book title")
    year: Optional[Number] = Field(None, description="Publication year")
    description: Optional[str] = Field(None, description="Book description")
    quantity: Optional[Number] = Field(None, description="Copies in stock")
    last_published: Optional[datetime] = Field(None, description="Last publication date")
    author: Optional[Union[AuthorResponse, str]] = Field(
        None, description="Full author record, or the raw identifier when it cannot be resolved"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "652f1b4a9d1e8a3b4c5d6e80",
                "title": "Designing Data Systems",
                "year": 2017,
                "description": "A tour of storage engines.",
                "quantity": 3,
                "lastPublished": "2024-01-15T10:30:00Z",
                "author": "652f1b2e9d1e8a3b4c5d6e7f",
            }
        }
    )


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str = Field(..., description="Confirmation message")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
    collections: List[str] = Field(default_factory=list, description="Collections that answered")
