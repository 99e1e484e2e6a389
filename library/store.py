"""
library/store.py -- SQLAlchemy-backed persistence for the movie library.

Uses SQLAlchemy Core (not ORM) so the dataclasses in library/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. MovieStore is the repository and
_row_to_movie the mapper. Route handlers never touch SQL directly.

find_by_id() is the method the check_ownership guard relies on; it must keep
returning an object with a created_by attribute.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = MovieStore("sqlite:///:memory:")
    movie_id = store.create_movie(Movie(title="Alien", year=1979, created_by=uid))
    store.update_movie(movie_id, updated_by=uid, rating=8.5)
    store.delete_movie(movie_id)
    store.close()
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.store import create_sqlite_aware_engine
from core.config import get_settings
from library.models import Movie

logger = logging.getLogger("reelguard.library")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_movies = Table(
    "movies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("year", Integer, nullable=False),
    Column("director", String(255)),
    Column("genre", Text),  # JSON array serialized as text
    Column("rating", Float),
    Column("age_rating", String(5)),
    Column("description", Text),
    Column("created_by", Integer, nullable=False, index=True),
    Column("updated_by", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_UPDATABLE = {"title", "year", "director", "genre", "rating", "age_rating", "description"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MovieStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = create_sqlite_aware_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def create_movie(self, movie: Movie) -> int:
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _movies.insert().values(
                    title=movie.title,
                    year=movie.year,
                    director=movie.director,
                    genre=json.dumps(movie.genre),
                    rating=movie.rating,
                    age_rating=movie.age_rating,
                    description=movie.description,
                    created_by=movie.created_by,
                    updated_by=movie.updated_by if movie.updated_by is not None else movie.created_by,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def find_by_id(self, movie_id: int) -> Optional[Movie]:
        """Return the movie or None. Used by the ownership guard."""
        with self.engine.connect() as conn:
            row = conn.execute(_movies.select().where(_movies.c.id == movie_id)).fetchone()
        return _row_to_movie(row) if row is not None else None

    def list_movies(self, limit: Optional[int] = None, offset: int = 0) -> list[Movie]:
        """Return movies newest first, optionally paginated."""
        query = _movies.select().order_by(_movies.c.created_at.desc(), _movies.c.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_movie(r) for r in rows]

    def count_movies(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_movies)).scalar() or 0

    def update_movie(self, movie_id: int, updated_by: int, **fields) -> bool:
        """Apply a partial update. Returns False if movie_id does not exist."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown movie fields: {unknown!r}")
        if "genre" in fields:
            fields["genre"] = json.dumps(fields["genre"] or [])
        with self.engine.connect() as conn:
            result = conn.execute(
                _movies.update()
                .where(_movies.c.id == movie_id)
                .values(updated_by=updated_by, updated_at=_now_iso(), **fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_movie(self, movie_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_movies.delete().where(_movies.c.id == movie_id))
            conn.commit()
        if result.rowcount:
            logger.info("Deleted movie id=%s", movie_id)
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_movie(row) -> Movie:
    return Movie(
        id=row.id,
        title=row.title,
        year=row.year,
        director=row.director,
        genre=json.loads(row.genre) if row.genre else [],
        rating=row.rating,
        age_rating=row.age_rating,
        description=row.description,
        created_by=row.created_by,
        updated_by=row.updated_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
