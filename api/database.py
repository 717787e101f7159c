"""
MongoDB access for books and authors.

``DatabaseManager`` owns the Motor client and hands collections to the
stores. Each store method performs a single database call (book listing
adds one lookup on the authors collection to expand references) and turns
any driver, id or validation failure into ``PersistenceError``.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from bson import ObjectId
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, PyMongoError

from api.exceptions import PersistenceError
from api.models import AuthorCreate, AuthorResponse, BookCreate, BookResponse, BookUpdate

logger = structlog.get_logger(__name__)

STORE_ERRORS = (ValidationError, BSONError, PyMongoError)


def document_to_dict(document: Dict[str, Any]) -> Dict[str, Any]:
    """Expose ``_id`` as a string ``id`` and stringify an ObjectId author reference."""
    data = dict(document)
    data["id"] = str(data.pop("_id"))
    data.pop("__v", None)
    if isinstance(data.get("author"), ObjectId):
        data["author"] = str(data["author"])
    return data


class DatabaseManager:
    """
    Async MongoDB connection handle.
    Created once at startup, closed at shutdown.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        books_collection: str = "books",
        authors_collection: str = "authors",
    ):
        """
        Initialize the manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            books_collection: Name of the books collection
            authors_collection: Name of the authors collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.books_collection_name = books_collection
        self.authors_collection_name = authors_collection
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and ensure indexes."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            await self.client.admin.command('ping')
            logger.info("Connected to MongoDB", database=self.database_name)

            await self.books.create_index("author")

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client is not None:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("Disconnected from MongoDB")

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self.database[self.books_collection_name]

    @property
    def authors(self) -> AsyncIOMotorCollection:
        return self.database[self.authors_collection_name]

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        if self.database is None:
            return {"status": "unhealthy", "error": "not connected"}
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "collections": [self.books_collection_name, self.authors_collection_name],
            }
        except PyMongoError as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}


class AuthorStore:
    """Create and look up authors."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def create(self, fields: Dict[str, Any]) -> AuthorResponse:
        """
        Insert a new author.

        Args:
            fields: Request body; ``firstName``, ``lastName`` and ``bio`` are used

        Returns:
            The stored author with its generated id
        """
        try:
            author = AuthorCreate.model_validate(fields)
            document = author.model_dump(by_alias=True, exclude_none=True)
            result = await self.collection.insert_one(document)
        except STORE_ERRORS as e:
            logger.error("Failed to create author", error=str(e))
            raise PersistenceError("create author") from e

        document["_id"] = result.inserted_id
        created = AuthorResponse(**document_to_dict(document))
        logger.info("Author created", author_id=created.id)
        return created

    async def get_many(self, author_ids: Iterable[ObjectId]) -> Dict[str, AuthorResponse]:
        """Fetch the given authors, keyed by string id. Missing ids are simply absent."""
        ids = list(set(author_ids))
        if not ids:
            return {}
        try:
            documents = await self.collection.find({"_id": {"$in": ids}}).to_list(length=None)
        except STORE_ERRORS as e:
            logger.error("Failed to retrieve authors", count=len(ids), error=str(e))
            raise PersistenceError("retrieve authors") from e

        authors = {}
        for document in documents:
            author = AuthorResponse(**document_to_dict(document))
            authors[author.id] = author
        return authors


class BookStore:
    """CRUD operations on books."""

    def __init__(self, collection: AsyncIOMotorCollection, author_store: AuthorStore):
        self.collection = collection
        self.author_store = author_store

    @staticmethod
    def _to_document(fields: Dict[str, Any]) -> Dict[str, Any]:
        if fields.get("author") is not None:
            fields["author"] = ObjectId(fields["author"])
        return fields

    async def create(self, fields: Dict[str, Any]) -> BookResponse:
        """
        Insert a new book.

        ``quantity`` defaults to 0 and ``lastPublished`` to the current time.
        The author reference is stored as given; its existence is not checked.

        Args:
            fields: Request body

        Returns:
            The stored book with its generated id
        """
        try:
            book = BookCreate.model_validate(fields)
            document = self._to_document(book.model_dump(by_alias=True, exclude_none=True))
            result = await self.collection.insert_one(document)
        except STORE_ERRORS as e:
            logger.error("Failed to create book", error=str(e))
            raise PersistenceError("create book") from e

        document["_id"] = result.inserted_id
        created = BookResponse(**document_to_dict(document))
        logger.info("Book created", book_id=created.id, title=created.title)
        return created

    async def list_all(self) -> List[BookResponse]:
        """
        Get every book with its author expanded.

        References that do not resolve to an author are left as the raw id.
        """
        try:
            documents = await self.collection.find({}).to_list(length=None)
        except STORE_ERRORS as e:
            logger.error("Failed to retrieve books", error=str(e))
            raise PersistenceError("retrieve books") from e

        author_ids = [doc["author"] for doc in documents if isinstance(doc.get("author"), ObjectId)]
        authors = await self.author_store.get_many(author_ids)

        books = []
        for document in documents:
            data = document_to_dict(document)
            if data.get("author") in authors:
                data["author"] = authors[data["author"]]
            books.append(BookResponse(**data))

        logger.debug("Retrieved books", count=len(books), authors_resolved=len(authors))
        return books

    async def update_by_id(self, book_id: str, fields: Dict[str, Any]) -> Optional[BookResponse]:
        """
        Apply a partial update to a book.

        Args:
            book_id: MongoDB _id of the book
            fields: Only the fields present are changed

        Returns:
            The updated book, or None if no book has this id
        """
        try:
            object_id = ObjectId(book_id)
            changes = BookUpdate.model_validate(fields).model_dump(by_alias=True, exclude_unset=True)
            changes = self._to_document(changes)
            if changes:
                document = await self.collection.find_one_and_update(
                    {"_id": object_id},
                    {"$set": changes},
                    return_document=ReturnDocument.AFTER,
                )
            else:
                document = await self.collection.find_one({"_id": object_id})
        except STORE_ERRORS as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise PersistenceError("update book") from e

        if document is None:
            logger.warning("Book not found for update", book_id=book_id)
            return None

        logger.info("Book updated", book_id=book_id, fields=sorted(changes))
        return BookResponse(**document_to_dict(document))

    async def delete_by_id(self, book_id: str) -> None:
        """
        Delete a book by MongoDB _id.

        Deleting an id that does not exist is not an error.
        """
        try:
            result = await self.collection.delete_one({"_id": ObjectId(book_id)})
        except STORE_ERRORS as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise PersistenceError("delete book") from e

        logger.info("Book deleted", book_id=book_id, deleted=result.deleted_count)
