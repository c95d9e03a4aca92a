"""Book catalog routes for the BookShop API."""

from typing import List

from fastapi import APIRouter, Depends, Query
from pymongo.collection import Collection

from . import schemas
from .book_service import BookService
from .catalog import BookRepository, get_books_collection

router = APIRouter(prefix="/api/books", tags=["books"])


def get_book_service(collection: Collection = Depends(get_books_collection)) -> BookService:
    """Build the catalog service over the books collection."""
    return BookService(BookRepository(collection))


@router.get("", response_model=List[schemas.BookOut])
def list_books(
    is_available: bool | None = Query(None),
    service: BookService = Depends(get_book_service),
):
    """
    Retrieve all books, optionally filtered by availability.

    Args:
        is_available (bool | None): Availability filter.
        service (BookService): Catalog service.

    Returns:
        list[BookOut]: Matching books.
    """
    return service.get_all(is_available)


@router.get("/search/exact", response_model=List[schemas.BookOut])
def search_exact(
    term: str = Query(""),
    is_available: bool | None = Query(None),
    service: BookService = Depends(get_book_service),
):
    """Find books whose title, language, publisher, author or genre equals ``term``."""
    return service.search_exact(term, is_available)


@router.get("/search/partial", response_model=List[schemas.BookOut])
def search_partial(
    term: str = Query(""),
    is_available: bool | None = Query(None),
    service: BookService = Depends(get_book_service),
):
    """Find books where a searchable field contains ``term``."""
    return service.search_partial(term, is_available)


@router.get("/{book_id}", response_model=schemas.BookOut)
def get_book(book_id: str, service: BookService = Depends(get_book_service)):
    """
    Retrieve a single book by ID.

    Raises:
        InvalidArgumentError: If the identifier is malformed.
        NotFoundError: If the book does not exist.
    """
    return service.get_by_id(book_id)


@router.get("/{book_id}/exists")
def book_exists(book_id: str, service: BookService = Depends(get_book_service)):
    """Report whether a book with the given ID exists."""
    return {"exists": service.exists(book_id)}


@router.post("", response_model=schemas.BookOut, status_code=201)
def create_book(book_in: schemas.BookCreate, service: BookService = Depends(get_book_service)):
    """
    Add a new book to the catalog.

    Args:
        book_in (BookCreate): Book data; every field is required.
        service (BookService): Catalog service.

    Returns:
        BookOut: Created book with its identifier.
    """
    return service.create(book_in)


@router.put("/{book_id}", response_model=schemas.BookOut)
def replace_book(
    book_id: str,
    book_in: schemas.BookUpdate,
    service: BookService = Depends(get_book_service),
):
    """
    Replace every field of an existing book.

    The identifier in the path wins over one supplied in the body.
    """
    book_in.id = book_id
    return service.update(book_in)


@router.patch("/{book_id}", response_model=schemas.BookOut)
def update_book(
    book_id: str,
    changes: schemas.BookPatch,
    service: BookService = Depends(get_book_service),
):
    """
    Update only the supplied, valid fields of a book.

    Args:
        book_id (str): Book identifier.
        changes (BookPatch): Fields to change.
        service (BookService): Catalog service.

    Returns:
        BookOut: Updated book.
    """
    return service.update_partial(book_id, changes)


@router.delete("/{book_id}", response_model=schemas.BookOut)
def delete_book(book_id: str, service: BookService = Depends(get_book_service)):
    """Delete a book and return the removed record."""
    return service.delete(book_id)
