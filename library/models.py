"""
library/models.py -- Domain dataclasses for the movie library.

Pure data containers with zero logic. Persistence lives in library/store.py;
input validation lives in the API request models (api/models.py).

created_by / updated_by hold auth user ids. They are the ownership link the
check_ownership guard compares against the session's user_id.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Movie:
    """A movie in the shared library.

    id is None before the record is written to the database.
    """

    title: str
    year: int
    created_by: int
    updated_by: Optional[int] = None
    director: Optional[str] = None
    genre: list[str] = field(default_factory=list)
    rating: Optional[float] = None
    age_rating: Optional[str] = None  # "0+" | "6+" | "12+" | "16+" | "18+"
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed by store on every update
