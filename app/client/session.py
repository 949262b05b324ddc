import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog

from app.client.identity import IdentityProvider, require_user
from app.client.notifications import DESTRUCTIVE, Notification, Notifier
from app.client.store import Note, NoteStore
from app.core.config import settings
from app.core.exceptions import AuthRequired, InvalidSessionState, StoreError
from app.schemas.note import normalize_title

logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


@dataclass
class Draft:
    """Unsaved title, content and tags for the note being edited"""

    title: str
    content: str
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_note(cls, note: Note) -> "Draft":
        return cls(title=note.title, content=note.content, tags=list(note.tags))

    def as_fields(self) -> Dict[str, Any]:
        return {
            "title": normalize_title(self.title),
            "content": self.content,
            "tags": list(self.tags),
        }


class EditSession:
    """
    Edit lifecycle of a single note.

    VIEWING -> EDITING on begin_edit(). Draft mutations while EDITING restart a
    debounce timer; when it expires the latest draft is written in the
    background (autosave). save() moves to SAVING, cancels the timer, lets any
    autosave already in flight settle, and then writes the draft; success
    returns to VIEWING, failure returns to EDITING with the draft intact.
    cancel() and close() drop the draft and ignore any autosave response that
    arrives afterwards.
    """

    def __init__(
        self,
        note: Note,
        store: NoteStore,
        identity: IdentityProvider,
        notifier: Notifier,
        autosave_delay: Optional[float] = None,
        on_persisted: Optional[Callable[[Note], None]] = None,
    ):
        self._note = note
        self._store = store
        self._identity = identity
        self._notifier = notifier
        self._delay = settings.AUTOSAVE_DELAY_SECONDS if autosave_delay is None else autosave_delay
        self._on_persisted = on_persisted

        self._state = SessionState.VIEWING
        self._draft = Draft.from_note(note)
        # Bumped whenever the session leaves EDITING; autosaves from an older epoch are stale
        self._epoch = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._autosave_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def note(self) -> Note:
        """Last persisted version of the note"""
        return self._note

    @property
    def draft(self) -> Draft:
        return self._draft

    @property
    def autosave_pending(self) -> bool:
        return self._timer is not None

    def _require_state(self, action: str, *states: SessionState) -> None:
        if self._state not in states:
            raise InvalidSessionState(f"Cannot {action} while {self._state.value}")

    def begin_edit(self) -> None:
        self._require_state("start editing", SessionState.VIEWING)
        require_user(self._identity)
        self._draft = Draft.from_note(self._note)
        self._state = SessionState.EDITING
        logger.debug("Editing started", note_id=self._note.id)

    def set_title(self, title: str) -> None:
        self._require_state("edit the title", SessionState.EDITING)
        self._draft.title = title
        self._schedule_autosave()

    def set_content(self, content: str) -> None:
        self._require_state("edit the content", SessionState.EDITING)
        self._draft.content = content
        self._schedule_autosave()

    def add_tag(self, tag: str) -> None:
        self._require_state("add a tag", SessionState.EDITING)
        tag = tag.strip()
        if not tag or tag in self._draft.tags:
            return
        self._draft.tags.append(tag)
        self._schedule_autosave()

    def remove_tag(self, tag: str) -> None:
        self._require_state("remove a tag", SessionState.EDITING)
        tag = tag.strip()
        if tag not in self._draft.tags:
            return
        self._draft.tags.remove(tag)
        self._schedule_autosave()

    async def save(self) -> Optional[Note]:
        """Persist the draft now. Returns the saved note, or None if the store failed."""
        self._require_state("save", SessionState.EDITING)
        require_user(self._identity)

        self._cancel_timer()
        self._epoch += 1
        epoch = self._epoch
        self._state = SessionState.SAVING

        pending = self._autosave_task
        if pending is not None and not pending.done():
            # An autosave already on the wire must land before this write is issued
            await asyncio.wait([pending])

        fields = self._draft.as_fields()
        try:
            note = await self._store.update(self._note.id, fields)
        except AuthRequired:
            self._resume_editing(epoch)
            raise
        except StoreError as e:
            logger.warning("Save failed", note_id=self._note.id, error=str(e))
            self._resume_editing(epoch)
            self._notifier.notify(Notification(
                title="Save failed",
                description="Failed to save your changes. Please try again.",
                variant=DESTRUCTIVE,
            ))
            return None
        except Exception:
            self._resume_editing(epoch)
            raise

        self._persisted(note)
        if epoch != self._epoch:
            logger.info("Session closed while saving", note_id=note.id)
            return note

        self._draft = Draft.from_note(note)
        self._state = SessionState.VIEWING
        logger.info("Note saved", note_id=note.id)
        self._notifier.notify(Notification(
            title="Note saved",
            description="Your changes have been saved successfully.",
        ))
        return note

    def cancel(self) -> None:
        """Discard the draft and go back to the last persisted note"""
        self._require_state("cancel", SessionState.EDITING)
        self.close()

    def close(self) -> None:
        """End the session from any state; pending and in-flight autosaves are dropped"""
        self._cancel_timer()
        self._epoch += 1
        self._draft = Draft.from_note(self._note)
        self._state = SessionState.VIEWING

    async def wait_for_autosave(self) -> None:
        """Wait until the autosave write currently in flight, if any, has finished"""
        task = self._autosave_task
        if task is not None and not task.done():
            await asyncio.wait([task])

    def _resume_editing(self, epoch: int) -> None:
        if epoch == self._epoch and self._state is SessionState.SAVING:
            self._state = SessionState.EDITING

    def _persisted(self, note: Note) -> None:
        self._note = note
        if self._on_persisted is not None:
            self._on_persisted(note)

    def _diverges(self, fields: Dict[str, Any]) -> bool:
        return fields != Draft.from_note(self._note).as_fields()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_autosave(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._fire_autosave, self._epoch)

    def _fire_autosave(self, epoch: int) -> None:
        self._timer = None
        if self._state is not SessionState.EDITING or epoch != self._epoch:
            return
        previous = self._autosave_task
        self._autosave_task = asyncio.get_running_loop().create_task(
            self._autosave(epoch, self._draft.as_fields(), previous)
        )

    async def _autosave(self, epoch: int, fields: Dict[str, Any], previous: Optional[asyncio.Task]) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        if self._state is not SessionState.EDITING or epoch != self._epoch:
            return
        # Compared only once earlier writes have landed, so the snapshot is current
        if not self._diverges(fields):
            logger.debug("Autosave skipped, draft matches saved note", note_id=self._note.id)
            return
        if self._identity.current_user() is None:
            logger.warning("Autosave skipped, no signed-in user", note_id=self._note.id)
            return

        try:
            note = await self._store.update(self._note.id, fields)
        except (StoreError, AuthRequired) as e:
            # Explicit save is still available, so autosave failures are only logged
            logger.warning("Autosave failed", note_id=self._note.id, error=str(e))
            return

        if self._state is not SessionState.EDITING or epoch != self._epoch:
            logger.debug("Ignoring stale autosave response", note_id=self._note.id)
            return
        self._persisted(note)
        logger.debug("Autosaved", note_id=note.id)
