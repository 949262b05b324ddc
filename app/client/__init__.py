from .filtering import ALL_TAGS, filter_notes
from .identity import ApiIdentityProvider, IdentityProvider, StaticIdentityProvider, UserIdentity
from .notifications import LogNotifier, Notification, Notifier
from .session import Draft, EditSession, SessionState
from .store import HttpNoteStore, InMemoryNoteStore, Note, NoteStore
from .workspace import NotesWorkspace

__all__ = [
    "ALL_TAGS", "filter_notes",
    "ApiIdentityProvider", "IdentityProvider", "StaticIdentityProvider", "UserIdentity",
    "LogNotifier", "Notification", "Notifier",
    "Draft", "EditSession", "SessionState",
    "HttpNoteStore", "InMemoryNoteStore", "Note", "NoteStore",
    "NotesWorkspace",
]
