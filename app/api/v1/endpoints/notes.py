from typing import List, Optional
import structlog
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.user import User
from app.models.note import Note
from app.schemas.note import NoteCreate, NoteUpdate, NoteResponse
from app.client.filtering import ALL_TAGS, filter_notes

router = APIRouter()
logger = structlog.get_logger(__name__)


async def get_owned_note(note_id: int, current_user: User, db: AsyncSession) -> Note:
    """Load a note owned by the current user; anything else is reported as not found"""
    result = await db.execute(
        select(Note).where(and_(Note.id == note_id, Note.owner_id == current_user.id))
    )
    note = result.scalar_one_or_none()

    if not note:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Note not found"
        )
    return note


@router.post("/", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a new note"""
    db_note = Note(
        title=note.title,
        content=note.content,
        tags=note.tags,
        owner_id=current_user.id
    )

    db.add(db_note)
    await db.commit()
    await db.refresh(db_note)

    logger.info("Note created", note_id=db_note.id, owner_id=current_user.id)
    return db_note


@router.get("/", response_model=List[NoteResponse])
async def get_notes(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search text in title and content"),
    tag: Optional[str] = Query(None, description="Only notes carrying this tag"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the user's notes, most recently updated first, with optional search and tag filtering"""
    query = (
        select(Note)
        .where(Note.owner_id == current_user.id)
        .order_by(Note.updated_at.desc(), Note.id.desc())
    )

    result = await db.execute(query)
    notes = result.scalars().all()

    # Tags live in a JSON column, so both predicates are applied the same way the client does
    notes = filter_notes(notes, search or "", tag or ALL_TAGS)

    return notes[skip:skip + limit]


@router.get("/tags", response_model=List[str])
async def get_available_tags(current_user: User = Depends(get_current_active_user)):
    """Get the tags offered when tagging a note"""
    return settings.AVAILABLE_TAGS


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a specific note by ID"""
    return await get_owned_note(note_id, current_user, db)


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    note_update: NoteUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a note (only owner)"""
    note = await get_owned_note(note_id, current_user, db)

    update_data = note_update.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(note, field, value)

    # Every successful write refreshes updated_at, even when nothing changed
    note.touch()

    await db.commit()
    await db.refresh(note)

    logger.info("Note updated", note_id=note.id, fields=sorted(update_data))
    return note


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a note (only owner)"""
    note = await get_owned_note(note_id, current_user, db)

    await db.delete(note)
    await db.commit()

    logger.info("Note deleted", note_id=note_id, owner_id=current_user.id)
