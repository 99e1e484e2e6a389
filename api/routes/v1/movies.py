"""
api/routes/v1/movies.py -- Movie library routes for the ReelGuard REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /movies/admin/all            -- every movie, newest first (admin only)
  DELETE /movies/admin/{movie_id}     -- delete any movie (admin only)
  GET    /movies                      -- paginated list (public)
  POST   /movies                      -- create; caller becomes created_by (auth)
  GET    /movies/{movie_id}           -- detail (public)
  PUT    /movies/{movie_id}           -- partial update (owner or admin)
  DELETE /movies/{movie_id}           -- delete (owner or admin)

The ownership rule is enforced by the check_ownership("movie") dependency
before the handler runs; handlers assume the caller is allowed.
"""

import math

from fastapi import APIRouter, Depends, Query, Request

from api.models import MessageResponse, MovieCreate, MovieListResponse, MovieResponse, MovieUpdate, Pagination
from auth.dependencies import check_ownership, require_admin, require_auth
from auth.errors import NotFound
from auth.models import SessionContext
from library.models import Movie
from library.store import MovieStore

router = APIRouter()

require_movie_owner = check_ownership("movie")

# title and year are NOT NULL; an explicit null in an update means "leave as is".
_REQUIRED_FIELDS = {"title", "year"}


def _get_or_404(store: MovieStore, movie_id: int) -> Movie:
    movie = store.find_by_id(movie_id)
    if movie is None:
        raise NotFound("Movie not found.")
    return movie


# ---------------------------------------------------------------------------
# Admin-only (registered first so "admin" is not captured as a movie_id)
# ---------------------------------------------------------------------------


@router.get("/movies/admin/all", response_model=list[MovieResponse])
def list_all_movies(request: Request, session: SessionContext = Depends(require_admin)) -> list[MovieResponse]:
    store: MovieStore = request.app.state.movie_store
    return [MovieResponse.from_movie(m) for m in store.list_movies()]


@router.delete("/movies/admin/{movie_id}", response_model=MessageResponse)
def admin_delete_movie(
    request: Request,
    movie_id: int,
    session: SessionContext = Depends(require_admin),
) -> MessageResponse:
    """Delete any movie regardless of ownership."""
    store: MovieStore = request.app.state.movie_store
    if not store.delete_movie(movie_id):
        raise NotFound("Movie not found.")
    return MessageResponse(message="Movie deleted by admin")


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------


@router.get("/movies", response_model=MovieListResponse)
def list_movies(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> MovieListResponse:
    store: MovieStore = request.app.state.movie_store
    total = store.count_movies()
    movies = store.list_movies(limit=limit, offset=(page - 1) * limit)
    return MovieListResponse(
        movies=[MovieResponse.from_movie(m) for m in movies],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
            has_more=page * limit < total,
        ),
    )


@router.get("/movies/{movie_id}", response_model=MovieResponse)
def get_movie(request: Request, movie_id: int) -> MovieResponse:
    store: MovieStore = request.app.state.movie_store
    return MovieResponse.from_movie(_get_or_404(store, movie_id))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@router.post("/movies", response_model=MovieResponse, status_code=201)
def create_movie(
    request: Request,
    body: MovieCreate,
    session: SessionContext = Depends(require_auth),
) -> MovieResponse:
    store: MovieStore = request.app.state.movie_store
    movie = Movie(
        title=body.title,
        year=body.year,
        director=body.director,
        genre=body.genre,
        rating=body.rating,
        age_rating=body.age_rating.value if body.age_rating else None,
        description=body.description,
        created_by=session.user_id,
        updated_by=session.user_id,
    )
    movie_id = store.create_movie(movie)
    return MovieResponse.from_movie(_get_or_404(store, movie_id))


@router.put("/movies/{movie_id}", response_model=MovieResponse)
def update_movie(
    request: Request,
    movie_id: int,
    body: MovieUpdate,
    session: SessionContext = Depends(require_movie_owner),
) -> MovieResponse:
    """Apply the fields present in the body; updated_by becomes the caller."""
    store: MovieStore = request.app.state.movie_store
    changes = {
        k: v for k, v in body.model_dump(mode="json", exclude_unset=True).items()
        if not (v is None and k in _REQUIRED_FIELDS)
    }
    if not store.update_movie(movie_id, updated_by=session.user_id, **changes):
        raise NotFound("Movie not found.")
    return MovieResponse.from_movie(_get_or_404(store, movie_id))


@router.delete("/movies/{movie_id}", response_model=MessageResponse)
def delete_movie(
    request: Request,
    movie_id: int,
    session: SessionContext = Depends(require_movie_owner),
) -> MessageResponse:
    store: MovieStore = request.app.state.movie_store
    if not store.delete_movie(movie_id):
        raise NotFound("Movie not found.")
    return MessageResponse(message="Movie deleted successfully")
