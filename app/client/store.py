from datetime import datetime, timezone
from itertools import count
from typing import Any, Dict, List, Protocol

import httpx
import structlog
from pydantic import ValidationError

from app.client.identity import IdentityProvider, require_user
from app.core.exceptions import StoreError
from app.schemas.note import NoteCreate, NoteResponse, NoteUpdate

logger = structlog.get_logger(__name__)

Note = NoteResponse

# Largest page the list endpoint serves
PAGE_SIZE = 100


class NoteStore(Protocol):
    """Persistence contract for notes; every method raises StoreError on failure"""

    async def list(self, owner_id: int) -> List[Note]:
        ...

    async def create(self, owner_id: int, fields: Dict[str, Any]) -> Note:
        ...

    async def update(self, note_id: int, fields: Dict[str, Any]) -> Note:
        ...

    async def delete(self, note_id: int) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryNoteStore:
    """Note store kept in process memory, scoped to the current identity"""

    def __init__(self, identity: IdentityProvider):
        self._identity = identity
        self._notes: Dict[int, Note] = {}
        self._ids = count(1)

    def _owned(self, note_id: int) -> Note:
        user = require_user(self._identity)
        note = self._notes.get(note_id)
        if note is None or note.owner_id != user.id:
            raise StoreError("Note not found", status_code=404)
        return note

    async def list(self, owner_id: int) -> List[Note]:
        user = require_user(self._identity)
        if owner_id != user.id:
            raise StoreError("Cannot list another user's notes", status_code=403)
        notes = [note for note in self._notes.values() if note.owner_id == owner_id]
        return sorted(notes, key=lambda n: (n.updated_at, n.id), reverse=True)

    async def create(self, owner_id: int, fields: Dict[str, Any]) -> Note:
        user = require_user(self._identity)
        if owner_id != user.id:
            raise StoreError("Cannot create notes for another user", status_code=403)
        try:
            data = NoteCreate(**fields)
        except ValidationError as e:
            raise StoreError(str(e), status_code=422) from e
        now = _utcnow()
        note = Note(
            id=next(self._ids),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self._notes[note.id] = note
        return note

    async def update(self, note_id: int, fields: Dict[str, Any]) -> Note:
        note = self._owned(note_id)
        try:
            changes = NoteUpdate(**fields).model_dump(exclude_unset=True, exclude_none=True)
        except ValidationError as e:
            raise StoreError(str(e), status_code=422) from e
        changes["updated_at"] = max(_utcnow(), note.updated_at)
        updated = note.model_copy(update=changes)
        self._notes[note_id] = updated
        return updated

    async def delete(self, note_id: int) -> None:
        self._owned(note_id)
        del self._notes[note_id]


class HttpNoteStore:
    """Note store backed by the notes REST service"""

    def __init__(self, client: httpx.AsyncClient, identity: IdentityProvider):
        self._client = client
        self._identity = identity

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        user = require_user(self._identity)
        headers = {"Authorization": f"Bearer {user.access_token}"}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Note store request failed", method=method, url=url, error=str(e))
            raise StoreError(f"Request to note store failed: {e}") from e
        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except (ValueError, AttributeError):
                detail = response.text
            raise StoreError(str(detail), status_code=response.status_code)
        return response

    def _check_owner(self, owner_id: int) -> None:
        # The service scopes every request by the bearer token's owner
        if owner_id != require_user(self._identity).id:
            raise StoreError("Owner does not match the signed-in user", status_code=403)

    @staticmethod
    def _decode(response: httpx.Response, many: bool = False) -> Any:
        try:
            data = response.json()
            if many:
                if not isinstance(data, list):
                    raise ValueError("expected a list of notes")
                return [Note.model_validate(item) for item in data]
            return Note.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning("Unreadable note store response", url=str(response.url), error=str(e))
            raise StoreError(f"Unexpected response from note store: {e}", status_code=response.status_code) from e

    async def list(self, owner_id: int) -> List[Note]:
        self._check_owner(owner_id)
        notes: List[Note] = []
        skip = 0
        while True:
            response = await self._request("GET", "/notes/", params={"skip": skip, "limit": PAGE_SIZE})
            page = self._decode(response, many=True)
            notes.extend(page)
            if len(page) < PAGE_SIZE:
                return notes
            skip += PAGE_SIZE

    async def create(self, owner_id: int, fields: Dict[str, Any]) -> Note:
        self._check_owner(owner_id)
        response = await self._request("POST", "/notes/", json=fields)
        return self._decode(response)

    async def update(self, note_id: int, fields: Dict[str, Any]) -> Note:
        response = await self._request("PUT", f"/notes/{note_id}", json=fields)
        return self._decode(response)

    async def delete(self, note_id: int) -> None:
        await self._request("DELETE", f"/notes/{note_id}")
