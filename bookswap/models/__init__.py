from .user import User
from .book import Book
from .book_request import BookRequest


__all__ = ["User", "Book", "BookRequest"]
