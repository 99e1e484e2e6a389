"""
API request and response models for ReelGuard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
library/models.py, which own the internal domain representation. Route
handlers map between the two.

No response model has a field for a password hash. Building responses from
these models is what strips hashes from credential records.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Role, User
from library.models import Movie

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    errors: Optional[list[str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Fields default to empty so a missing username or password reaches the
    service-level validation, which reports every violated rule at once.
    Lengths are only capped here, to bound hashing work.
    """

    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, username=user.username, role=user.role)


class AuthResponse(BaseModel):
    """Response for register and login."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserSummary


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    role: Role


class UserResponse(BaseModel):
    """A credential record without its password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    role: Role
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


# ---------------------------------------------------------------------------
# Movies -- enums and requests
# ---------------------------------------------------------------------------


class AgeRatingEnum(str, Enum):
    all_ages = "0+"
    six = "6+"
    twelve = "12+"
    sixteen = "16+"
    eighteen = "18+"


class MovieCreate(BaseModel):
    """Request body for POST /api/v1/movies."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    year: int = Field(ge=1888, le=2030)
    director: Optional[str] = Field(default=None, max_length=255)
    genre: list[str] = Field(default_factory=list, max_length=20)
    rating: Optional[float] = Field(default=None, ge=0, le=10)
    age_rating: Optional[AgeRatingEnum] = None
    description: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("genre", mode="before")
    @classmethod
    def normalize_genre(cls, value):
        """Accept a single string or a list; drop blank entries."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(g).strip() for g in value if str(g).strip()]


class MovieUpdate(MovieCreate):
    """Request body for PUT /api/v1/movies/{movie_id}. Every field optional.

    Routes apply only the fields the client sent (model_dump(exclude_unset=True)).
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    year: Optional[int] = Field(default=None, ge=1888, le=2030)
    genre: Optional[list[str]] = Field(default=None, max_length=20)


# ---------------------------------------------------------------------------
# Movies -- responses
# ---------------------------------------------------------------------------


class MovieResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    year: int
    director: Optional[str]
    genre: list[str]
    rating: Optional[float]
    age_rating: Optional[str]
    description: Optional[str]
    created_by: int
    updated_by: Optional[int]
    created_at: str
    updated_at: str

    @classmethod
    def from_movie(cls, movie: Movie) -> "MovieResponse":
        return cls(
            id=movie.id,
            title=movie.title,
            year=movie.year,
            director=movie.director,
            genre=movie.genre,
            rating=movie.rating,
            age_rating=movie.age_rating,
            description=movie.description,
            created_by=movie.created_by,
            updated_by=movie.updated_by,
            created_at=movie.created_at,
            updated_at=movie.updated_at,
        )


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool


class MovieListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    movies: list[MovieResponse]
    pagination: Pagination
