"""Catalog store backed by a MongoDB collection.

Book documents use camel-cased field names; ``book_to_document`` and
``book_from_document`` are the only places that know the mapping.
"""

import logging
import re
from decimal import Decimal
from functools import lru_cache
from typing import Any

from bson import Decimal128, ObjectId
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection

from .core import get_settings
from .schemas import BookBase, BookOut

LOGGER = logging.getLogger(__name__)

#: Schema attribute -> document field
FIELD_NAMES = {
    "title": "title",
    "authors": "authors",
    "price": "price",
    "pages": "pages",
    "publisher": "publisher",
    "language": "language",
    "genres": "genres",
    "link": "link",
    "is_available": "isAvailable",
    "annotation": "annotation",
}

EXACT_MATCH_FIELDS = ("title", "language", "publisher", "authors", "genres")
PARTIAL_MATCH_FIELDS = ("title", "language", "annotation", "publisher", "authors", "genres")


def to_document_value(field: str, value: Any) -> Any:
    """Convert a schema value into its stored representation."""
    if field == "price" and value is not None:
        return Decimal128(Decimal(value))
    if field in ("authors", "genres") and value is not None:
        return list(value)
    return value


def book_to_document(book: BookBase) -> dict[str, Any]:
    """Build a book document (without ``_id``) from a full payload."""
    return {
        FIELD_NAMES[name]: to_document_value(name, getattr(book, name))
        for name in FIELD_NAMES
    }


def book_from_document(doc: dict[str, Any]) -> BookOut:
    """Build the client representation of a stored book document."""
    price = doc.get("price")
    if isinstance(price, Decimal128):
        price = price.to_decimal()
    return BookOut(
        id=str(doc["_id"]),
        title=doc.get("title") or "",
        authors=list(doc.get("authors") or []),
        price=Decimal(price if price is not None else 0),
        pages=int(doc.get("pages") or 0),
        publisher=doc.get("publisher") or "",
        language=doc.get("language") or "",
        genres=list(doc.get("genres") or []),
        link=doc.get("link") or "",
        is_available=bool(doc.get("isAvailable", False)),
        annotation=doc.get("annotation") or "",
    )


def availability_filter(is_available: bool | None) -> dict[str, Any]:
    """Equality filter on availability, or an empty filter when ``None``."""
    if is_available is None:
        return {}
    return {"isAvailable": is_available}


def regex_filter(fields: tuple[str, ...], pattern: str) -> dict[str, Any]:
    """Case-insensitive regex match against any of ``fields``.

    Array fields match when any element matches.
    """
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def _with_availability(search: dict[str, Any], is_available: bool | None) -> dict[str, Any]:
    if is_available is None:
        return search
    return {"$and": [search, availability_filter(is_available)]}


def exact_match_filter(term: str, is_available: bool | None = None) -> dict[str, Any]:
    """Whole-field, case-insensitive match of ``term``."""
    pattern = f"^{re.escape(term.strip())}$"
    return _with_availability(regex_filter(EXACT_MATCH_FIELDS, pattern), is_available)


def partial_match_filter(term: str, is_available: bool | None = None) -> dict[str, Any]:
    """Case-insensitive substring match of ``term``."""
    pattern = re.escape(term.strip())
    return _with_availability(regex_filter(PARTIAL_MATCH_FIELDS, pattern), is_available)


class BookRepository:
    """Book persistence over a pymongo collection.

    Identifiers are expected to be valid ObjectId strings; the service
    validates them before calling in.
    """

    def __init__(self, collection: Collection):
        self.collection = collection

    def find_all(self, is_available: bool | None = None) -> list[BookOut]:
        return [book_from_document(doc) for doc in self.collection.find(availability_filter(is_available))]

    def find_by_id(self, book_id: str) -> BookOut | None:
        doc = self.collection.find_one({"_id": ObjectId(book_id)})
        return book_from_document(doc) if doc else None

    def find_exact(self, term: str, is_available: bool | None = None) -> list[BookOut]:
        return [book_from_document(doc) for doc in self.collection.find(exact_match_filter(term, is_available))]

    def find_partial(self, term: str, is_available: bool | None = None) -> list[BookOut]:
        return [book_from_document(doc) for doc in self.collection.find(partial_match_filter(term, is_available))]

    def insert(self, book: BookBase) -> BookOut:
        doc = book_to_document(book)
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return book_from_document(doc)

    def delete_by_id(self, book_id: str) -> BookOut | None:
        doc = self.collection.find_one_and_delete({"_id": ObjectId(book_id)})
        return book_from_document(doc) if doc else None

    def replace(self, book_id: str, book: BookBase) -> BookOut | None:
        doc = self.collection.find_one_and_replace(
            {"_id": ObjectId(book_id)},
            book_to_document(book),
            return_document=ReturnDocument.AFTER,
        )
        return book_from_document(doc) if doc else None

    def apply_partial_update(self, book_id: str, fields: dict[str, Any]) -> BookOut | None:
        """
        Set only the given fields of a book in a single update.

        Args:
            book_id (str): Book identifier.
            fields (dict): Schema attribute names mapped to new values.

        Returns:
            BookOut | None: Updated book, or ``None`` if it does not exist.
        """
        changes = {FIELD_NAMES[name]: to_document_value(name, value) for name, value in fields.items()}
        doc = self.collection.find_one_and_update(
            {"_id": ObjectId(book_id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return book_from_document(doc) if doc else None


@lru_cache()
def get_mongo_client() -> MongoClient:
    """Return the process-wide MongoDB client."""
    settings = get_settings()
    LOGGER.info("Connecting to MongoDB: db=%s collection=%s", settings.MONGODB_DB, settings.MONGODB_COLLECTION)
    return MongoClient(settings.MONGODB_URL, serverSelectionTimeoutMS=3000)


def get_books_collection() -> Collection:
    """FastAPI dependency returning the books collection."""
    settings = get_settings()
    return get_mongo_client()[settings.MONGODB_DB][settings.MONGODB_COLLECTION]
