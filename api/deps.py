"""FastAPI dependency implementations."""

from typing import Any, Dict

from fastapi import HTTPException, Request, status

from api.database import AuthorStore, BookStore


def get_book_store(request: Request) -> BookStore:
    """Get the book store created at startup."""
    return request.app.state.book_store


def get_author_store(request: Request) -> AuthorStore:
    """Get the author store created at startup."""
    return request.app.state.author_store


async def json_body(request: Request) -> Dict[str, Any]:
    """
    Read the request body as a JSON object.

    A missing body, a non-JSON content type or a non-object value is
    treated as ``{}`` so that field validation happens in the store.
    A body that claims to be JSON but does not parse is rejected with 400
    before any store is called.
    """
    if "json" not in request.headers.get("content-type", ""):
        return {}
    if not await request.body():
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed JSON body"
        )
    return body if isinstance(body, dict) else {}
