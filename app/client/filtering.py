from typing import Iterable, List, Optional, TypeVar

ALL_TAGS = "All"

N = TypeVar("N")


def matches_query(note, query: str) -> bool:
    """Case-insensitive substring match over title and content"""
    if not query:
        return True
    needle = query.lower()
    return needle in (note.title or "").lower() or needle in (note.content or "").lower()


def matches_tag(note, tag: Optional[str]) -> bool:
    if tag is None or tag == ALL_TAGS:
        return True
    return tag in (note.tags or [])


def filter_notes(notes: Iterable[N], query: str = "", tag: Optional[str] = ALL_TAGS) -> List[N]:
    """Return the notes matching both the search query and the selected tag, in their original order"""
    return [note for note in notes if matches_query(note, query) and matches_tag(note, tag)]
