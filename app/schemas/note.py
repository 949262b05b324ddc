from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Iterable, Optional, List

from app.core.config import settings


def normalize_title(title: Optional[str]) -> str:
    """Blank titles fall back to the placeholder instead of being rejected"""
    if title is None or not title.strip():
        return settings.DEFAULT_NOTE_TITLE
    return title


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop blanks and duplicates, keep first-seen order"""
    seen = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


TITLE_MAX_LENGTH = 200


class NoteBase(BaseModel):
    title: str = Field(settings.DEFAULT_NOTE_TITLE, max_length=TITLE_MAX_LENGTH)
    content: str = ""
    tags: List[str] = []


class NoteCreate(NoteBase):
    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v):
        return normalize_title(v)

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v):
        return v or ""

    @field_validator("tags", mode="before")
    @classmethod
    def dedupe_tags(cls, v):
        return normalize_tags(v)


class NoteUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=TITLE_MAX_LENGTH)
    content: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def default_title(cls, v):
        return None if v is None else normalize_title(v)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v):
        return None if v is None else normalize_tags(v)


class NoteResponse(NoteBase):
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
