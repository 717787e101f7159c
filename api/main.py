"""
FastAPI main application for the Bookshelf API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.config import APIConfig, config
from api.database import AuthorStore, BookStore, DatabaseManager
from api.deps import get_author_store, get_book_store, json_body
from api.exceptions import PersistenceError
from api.middleware import log_requests
from api.models import (
    AuthorResponse, BookResponse, ErrorResponse,
    HealthResponse, MessageResponse
)
from utilities.logger import get_logger, setup_logging

logger = get_logger(__name__)

ERROR_RESPONSES = {500: {"model": ErrorResponse}}

router = APIRouter()


def error_response(message: str) -> JSONResponse:
    """Fixed 500 body for a failed store operation."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error=message).model_dump(exclude_none=True),
    )


# Books endpoints
@router.post(
    "/books",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Books"],
)
async def create_book(
    payload: Dict[str, Any] = Depends(json_body),
    book_store: BookStore = Depends(get_book_store),
):
    """
    Create a new book.

    - **title**, **year**, **description** (max 1000 chars)
    - **quantity**: non-negative, defaults to 0
    - **author**: id of an existing author
    """
    try:
        return await book_store.create(payload)
    except PersistenceError as e:
        logger.error("Error while creating the book", error=str(e.__cause__ or e))
        return error_response("Failed to create the book")


@router.get("/books", response_model=List[BookResponse], responses=ERROR_RESPONSES, tags=["Books"])
async def list_books(book_store: BookStore = Depends(get_book_store)):
    """Get all books, each with its author expanded."""
    try:
        return await book_store.list_all()
    except PersistenceError as e:
        logger.error("Error while retrieving books", error=str(e.__cause__ or e))
        return error_response("Failed to retrieve books")


@router.put("/books/{book_id}", response_model=Optional[BookResponse], responses=ERROR_RESPONSES, tags=["Books"])
async def update_book(
    book_id: str,
    payload: Dict[str, Any] = Depends(json_body),
    book_store: BookStore = Depends(get_book_store),
):
    """
    Update the given fields of a book.

    Responds with ``null`` when no book has this id.
    """
    try:
        return await book_store.update_by_id(book_id, payload)
    except PersistenceError as e:
        logger.error("Error while updating the book", book_id=book_id, error=str(e.__cause__ or e))
        return error_response("Failed to update the book")


@router.delete("/books/{book_id}", response_model=MessageResponse, responses=ERROR_RESPONSES, tags=["Books"])
async def delete_book(book_id: str, book_store: BookStore = Depends(get_book_store)):
    """Delete a book. Deleting an unknown id still succeeds."""
    try:
        await book_store.delete_by_id(book_id)
    except PersistenceError as e:
        logger.error("Error while deleting the book", book_id=book_id, error=str(e.__cause__ or e))
        return error_response("Deleting book failed")
    return MessageResponse(message="Book deleted successfully")


# Authors endpoints
@router.post(
    "/authors",
    response_model=AuthorResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Authors"],
)
async def create_author(
    payload: Dict[str, Any] = Depends(json_body),
    author_store: AuthorStore = Depends(get_author_store),
):
    """Create a new author from **firstName**, **lastName** and **bio**."""
    try:
        return await author_store.create(payload)
    except PersistenceError as e:
        logger.error("Error while creating the author", error=str(e.__cause__ or e))
        return error_response("Failed to create the author")


# Health check endpoint
@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    db_manager: Optional[DatabaseManager] = getattr(request.app.state, "db_manager", None)
    health_info = {"status": "unavailable"}
    if db_manager:
        health_info = await db_manager.health_check()
    db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=request.app.version,
        database_status=db_status,
        collections=health_info.get("collections", []),
    )


def create_app(settings: APIConfig = config) -> FastAPI:
    """
    Build the FastAPI application.

    The database connection is opened in the lifespan handler and the
    stores built on it are kept on ``app.state``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            log_level=settings.log_level,
            log_format=settings.log_format,
            log_file=settings.log_file,
            debug=settings.debug,
        )
        logger.info("Starting Bookshelf API")

        db_manager = DatabaseManager(
            connection_url=settings.mongodb_url,
            database_name=settings.mongodb_database,
            books_collection=settings.books_collection,
            authors_collection=settings.authors_collection,
        )
        await db_manager.connect()

        author_store = AuthorStore(db_manager.authors)
        app.state.db_manager = db_manager
        app.state.author_store = author_store
        app.state.book_store = BookStore(db_manager.books, author_store)

        try:
            yield
        finally:
            logger.info("Shutting down Bookshelf API")
            await db_manager.disconnect()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.middleware("http")(log_requests)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions."""
        logger.warning("Request rejected", status_code=exc.status_code, error=exc.detail, path=request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.detail).model_dump(exclude_none=True),
            headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc) if settings.debug else None,
            ).model_dump(exclude_none=True),
        )

    app.include_router(router)

    # Mounted last so the API routes take precedence
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir), name="static")

    return app


app = create_app()
