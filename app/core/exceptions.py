from typing import Optional


class NotesError(Exception):
    """Base class for note workspace errors"""


class AuthRequired(NotesError):
    """Raised when an operation needs a signed-in user and there is none"""

    def __init__(self, message: str = "Sign in required"):
        super().__init__(message)


class StoreError(NotesError):
    """Any failure reported by the note store (transport, auth, not found)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidSessionState(NotesError):
    """Raised when an edit session operation is not allowed in its current state"""
