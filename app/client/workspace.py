from typing import List, Optional

import structlog

from app.client.filtering import ALL_TAGS, filter_notes
from app.client.identity import IdentityProvider, require_user
from app.client.notifications import DESTRUCTIVE, Notification, Notifier
from app.client.session import EditSession, SessionState
from app.client.store import Note, NoteStore
from app.core.config import settings
from app.core.exceptions import StoreError

logger = structlog.get_logger(__name__)


class NotesWorkspace:
    """A signed-in user's notes: the loaded list, search and tag filters, selection and the active edit session"""

    def __init__(
        self,
        store: NoteStore,
        identity: IdentityProvider,
        notifier: Notifier,
        autosave_delay: Optional[float] = None,
    ):
        self._store = store
        self._identity = identity
        self._notifier = notifier
        self._autosave_delay = autosave_delay
        self.notes: List[Note] = []
        self.query = ""
        self.tag = ALL_TAGS
        self.session: Optional[EditSession] = None

    @property
    def available_tags(self) -> List[str]:
        return list(settings.AVAILABLE_TAGS)

    @property
    def visible_notes(self) -> List[Note]:
        return filter_notes(self.notes, self.query, self.tag)

    @property
    def selected(self) -> Optional[Note]:
        return self.session.note if self.session is not None else None

    @property
    def is_editing(self) -> bool:
        return self.session is not None and self.session.state is not SessionState.VIEWING

    def set_query(self, query: str) -> None:
        self.query = query or ""

    def set_tag(self, tag: Optional[str]) -> None:
        self.tag = tag or ALL_TAGS

    def _fail(self, description: str, error: StoreError) -> None:
        logger.warning(description, error=str(error), status_code=error.status_code)
        self._notifier.notify(Notification(title="Error", description=description, variant=DESTRUCTIVE))

    def _find(self, note_id: int) -> Note:
        for note in self.notes:
            if note.id == note_id:
                return note
        raise KeyError(f"Unknown note_id: {note_id}")

    def _replace(self, note: Note) -> None:
        self.notes = [note if n.id == note.id else n for n in self.notes]

    async def load(self) -> List[Note]:
        user = require_user(self._identity)
        try:
            self.notes = await self._store.list(user.id)
        except StoreError as e:
            self._fail("Failed to load notes", e)
        return self.notes

    def select(self, note_id: int) -> EditSession:
        """Open a note for viewing, dropping any unsaved draft of the previous one"""
        note = self._find(note_id)
        if self.session is not None:
            self.session.close()
        self.session = EditSession(
            note,
            self._store,
            self._identity,
            self._notifier,
            autosave_delay=self._autosave_delay,
            on_persisted=self._replace,
        )
        return self.session

    def clear_selection(self) -> None:
        if self.session is not None:
            self.session.close()
        self.session = None

    def edit(self, note_id: Optional[int] = None) -> EditSession:
        if note_id is not None and (self.selected is None or self.selected.id != note_id):
            self.select(note_id)
        if self.session is None:
            raise KeyError("No note selected")
        self.session.begin_edit()
        return self.session

    async def save(self) -> Optional[Note]:
        if self.session is None:
            raise KeyError("No note selected")
        return await self.session.save()

    def cancel(self) -> None:
        if self.session is not None:
            self.session.cancel()

    async def create_note(self) -> Optional[Note]:
        user = require_user(self._identity)
        try:
            note = await self._store.create(
                user.id,
                {"title": settings.DEFAULT_NOTE_TITLE, "content": "", "tags": []},
            )
        except StoreError as e:
            self._fail("Failed to create note", e)
            return None

        self.notes = [note] + self.notes
        self.edit(note.id)
        logger.info("Note created", note_id=note.id)
        self._notifier.notify(Notification(title="New note created", description="Start writing your thoughts!"))
        return note

    async def delete_note(self, note_id: int) -> bool:
        require_user(self._identity)
        try:
            await self._store.delete(note_id)
        except StoreError as e:
            self._fail("Failed to delete note", e)
            return False

        self.notes = [note for note in self.notes if note.id != note_id]
        if self.selected is not None and self.selected.id == note_id:
            self.clear_selection()
        logger.info("Note deleted", note_id=note_id)
        self._notifier.notify(Notification(title="Note deleted", description="The note has been removed."))
        return True
