from .user import UserCreate, UserResponse
from .note import NoteCreate, NoteUpdate, NoteResponse, normalize_title, normalize_tags
from .auth import Token

__all__ = [
    "UserCreate", "UserResponse",
    "NoteCreate", "NoteUpdate", "NoteResponse", "normalize_title", "normalize_tags",
    "Token"
]
