"""Catalog business logic: validation, search and partial updates."""

import logging
import re
from decimal import Decimal
from typing import Any, Callable, Sequence
from urllib.parse import urlsplit

from .catalog import BookRepository
from .errors import InvalidArgumentError, NotFoundError, OperationFailedError
from .schemas import BookBase, BookCreate, BookOut, BookPatch, BookUpdate

LOGGER = logging.getLogger(__name__)

_OBJECT_ID_RE = re.compile(r"[0-9a-fA-F]{24}")


def is_blank(value: str | None) -> bool:
    """Return whether ``value`` is missing or whitespace only."""
    return value is None or not value.strip()


def is_blank_list(values: Sequence[str] | None) -> bool:
    """Return whether a list is missing, empty or starts with a blank item."""
    return not values or is_blank(values[0])


def is_absolute_uri(value: str | None) -> bool:
    """Return whether ``value`` is a well-formed absolute URI."""
    if is_blank(value) or any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    if not parts.scheme:
        return False
    if parts.scheme.lower() in ("http", "https"):
        return bool(parts.netloc)
    return bool(parts.netloc or parts.path)


def is_positive(value: Decimal | int | None) -> bool:
    return value is not None and value > 0


#: Field -> predicate a supplied value must satisfy in a partial update
PARTIAL_UPDATE_RULES: dict[str, Callable[[Any], bool]] = {
    "title": lambda v: not is_blank(v),
    "publisher": lambda v: not is_blank(v),
    "language": lambda v: not is_blank(v),
    "annotation": lambda v: not is_blank(v),
    "authors": lambda v: not is_blank_list(v),
    "genres": lambda v: not is_blank_list(v),
    "price": is_positive,
    "pages": is_positive,
    "link": is_absolute_uri,
    "is_available": lambda v: v is not None,
}


def select_partial_update(changes: BookPatch) -> dict[str, Any]:
    """
    Pick the fields of a patch that should be written.

    A field is kept when it was supplied (not ``None``) and passes its
    rule in :data:`PARTIAL_UPDATE_RULES`. ``is_available=False`` is a
    legitimate value.

    Args:
        changes (BookPatch): Patch payload.

    Returns:
        dict: Field names mapped to the values to set.
    """
    selected = {}
    for field, rule in PARTIAL_UPDATE_RULES.items():
        value = getattr(changes, field)
        if value is None or not rule(value):
            continue
        selected[field] = value
    return selected


def validate_book_id(book_id: str | None) -> str:
    """Ensure ``book_id`` is a 24-hex-digit ObjectId string."""
    if is_blank(book_id):
        raise InvalidArgumentError("Book ID cannot be empty or null.")
    if not _OBJECT_ID_RE.fullmatch(book_id):
        raise InvalidArgumentError("Invalid Book ID format.")
    return book_id


def validate_book(book: BookBase | None) -> None:
    """Check that every field of a full book payload is present and valid."""
    if book is None:
        raise InvalidArgumentError("Book data cannot be null.")

    invalid = (
        is_blank(book.title)
        or is_blank_list(book.authors)
        or not is_positive(book.price)
        or not is_positive(book.pages)
        or is_blank(book.publisher)
        or is_blank(book.language)
        or is_blank_list(book.genres)
        or is_blank(book.annotation)
        or not is_absolute_uri(book.link)
    )
    if invalid:
        raise InvalidArgumentError("Book fields cannot be empty.")


class BookService:
    """Catalog operations on top of a :class:`BookRepository`."""

    def __init__(self, repository: BookRepository):
        self.repository = repository

    def get_all(self, is_available: bool | None = None) -> list[BookOut]:
        """
        Retrieve all books, optionally filtered by availability.

        Raises:
            NotFoundError: If nothing matches.
        """
        books = self.repository.find_all(is_available)
        if not books:
            raise NotFoundError("No books found.")
        return books

    def get_by_id(self, book_id: str) -> BookOut:
        validate_book_id(book_id)
        book = self.repository.find_by_id(book_id)
        if book is None:
            raise NotFoundError(f"Book with ID '{book_id}' not found.")
        return book

    def search_exact(self, term: str | None, is_available: bool | None = None) -> list[BookOut]:
        """
        Find books where a searchable field equals ``term`` ignoring case.

        Title, language and publisher are compared whole; authors and
        genres element by element.
        """
        if is_blank(term):
            raise InvalidArgumentError("Search term cannot be null or empty.")
        books = self.repository.find_exact(term, is_available)
        if not books:
            raise NotFoundError("No books found matching the search criteria.")
        return books

    def search_partial(self, term: str | None, is_available: bool | None = None) -> list[BookOut]:
        """Find books where a searchable field contains ``term`` ignoring case."""
        if is_blank(term):
            raise InvalidArgumentError("Search term cannot be null or empty.")
        books = self.repository.find_partial(term, is_available)
        if not books:
            raise NotFoundError("No books found matching the search criteria.")
        return books

    def exists(self, book_id: str) -> bool:
        validate_book_id(book_id)
        return self.repository.find_by_id(book_id) is not None

    def create(self, book: BookCreate) -> BookOut:
        validate_book(book)
        created = self.repository.insert(book)
        LOGGER.info("Book created", extra={"book_id": created.id})
        return created

    def delete(self, book_id: str) -> BookOut:
        """
        Delete a book and return what was removed.

        Raises:
            InvalidArgumentError: If the identifier is malformed.
            NotFoundError: If the book does not exist.
        """
        validate_book_id(book_id)
        if not self.exists(book_id):
            raise NotFoundError(f"Book with ID '{book_id}' not found.")
        deleted = self.repository.delete_by_id(book_id)
        if deleted is None:
            raise NotFoundError(f"Book with ID '{book_id}' not found.")
        LOGGER.info("Book deleted", extra={"book_id": book_id})
        return deleted

    def update(self, book: BookUpdate) -> BookOut:
        """
        Replace every field of an existing book.

        Raises:
            InvalidArgumentError: If the payload or identifier is invalid.
            NotFoundError: If the book does not exist.
            OperationFailedError: If the store did not apply the replacement.
        """
        validate_book(book)
        validate_book_id(book.id)
        if not self.exists(book.id):
            raise NotFoundError(f"Book with ID '{book.id}' not found.")
        updated = self.repository.replace(book.id, book)
        if updated is None:
            raise OperationFailedError("Book update failed.")
        LOGGER.info("Book replaced", extra={"book_id": book.id})
        return updated

    def update_partial(self, book_id: str, changes: BookPatch | None) -> BookOut:
        """
        Apply only the supplied, individually valid fields of ``changes``.

        Raises:
            InvalidArgumentError: If the identifier is malformed or no
                field qualifies for the update.
            NotFoundError: If the book does not exist.
        """
        if changes is None:
            raise InvalidArgumentError("Book data cannot be null.")
        validate_book_id(book_id)

        fields = select_partial_update(changes)
        if not fields:
            raise InvalidArgumentError("No valid fields provided for update.")

        updated = self.repository.apply_partial_update(book_id, fields)
        if updated is None:
            raise NotFoundError(f"Book with ID '{book_id}' not found.")
        LOGGER.info("Book updated: %s", ", ".join(sorted(fields)), extra={"book_id": book_id})
        return updated
