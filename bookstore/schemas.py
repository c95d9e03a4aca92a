"""Request and response schemas.

Book payloads are intentionally permissive: presence and value rules
are enforced by the catalog service so that every violation is
reported the same way.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class UserRegister(BaseModel):
    """Payload for registering a new account."""

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RegisteredUser(BaseModel):
    """Identifier of a freshly registered account."""

    id: int


class EmailRequest(BaseModel):
    """Schema for resending the confirmation email."""

    email: str


class Message(BaseModel):
    """Plain informational response."""

    message: str


class BookBase(BaseModel):
    """Fields shared by full book payloads."""

    title: Optional[str] = None
    authors: Optional[List[str]] = None
    price: Optional[Decimal] = None
    pages: Optional[int] = None
    publisher: Optional[str] = None
    language: Optional[str] = None
    genres: Optional[List[str]] = None
    link: Optional[str] = None
    is_available: bool = False
    annotation: Optional[str] = None


class BookCreate(BookBase):
    """Schema for creating a book."""

    pass


class BookUpdate(BookBase):
    """Schema for replacing every field of an existing book."""

    id: Optional[str] = None


class BookPatch(BaseModel):
    """Schema for partially updating a book (all fields optional)."""

    title: Optional[str] = None
    authors: Optional[List[str]] = None
    price: Optional[Decimal] = None
    pages: Optional[int] = None
    publisher: Optional[str] = None
    language: Optional[str] = None
    genres: Optional[List[str]] = None
    link: Optional[str] = None
    is_available: Optional[bool] = None
    annotation: Optional[str] = None


class BookOut(BaseModel):
    """Book as returned to clients."""

    id: str
    title: str
    authors: List[str]
    price: Decimal
    pages: int
    publisher: str
    language: str
    genres: List[str]
    link: str
    is_available: bool
    annotation: str
