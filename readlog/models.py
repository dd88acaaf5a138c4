"""Data models for the reading log."""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Union


class ReadingStatus(str, Enum):
    """Reading status of a book. Values are the stored (wire) spellings."""
    COMPLETED = "完食"
    TO_READ = "待閱"
    DROPPED = "棄書"
    READING = "閱讀中"


class BookType(str, Enum):
    """Built-in book types. Any other non-empty string is a custom type."""
    COMIC = "漫畫"
    PHYSICAL = "實體書"
    ORIGINAL_NOVEL = "原創小說"
    FOREIGN = "外文書"
    NON_FICTION = "非小說"


UNKNOWN_AUTHOR = "未知"
LEGACY_TAG = "舊紀錄"

Number = Union[int, float]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id() -> str:
    """Mint a new unique book id."""
    return str(uuid.uuid4())


def title_key(title: str) -> str:
    """Natural de-duplication key for a title."""
    return title.strip().casefold()


@dataclass(frozen=True)
class Book:
    """Canonical book record. Never mutated; use dataclasses.replace."""
    id: str
    title: str
    author: str
    status: ReadingStatus
    rating: Number
    review: str
    type: str
    created_at: int
    updated_at: int
    quotes: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    is_favorite: bool = False
    read_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored/exported shape (camelCase keys)."""
        data = {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "status": self.status.value,
            "rating": self.rating,
            "review": self.review,
            "quotes": list(self.quotes),
            "type": self.type,
            "keywords": list(self.keywords),
            "isFavorite": self.is_favorite,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.read_at is not None:
            data["readAt"] = self.read_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Book":
        """Load a record that is already in canonical shape."""
        return cls(
            id=data["id"],
            title=data["title"],
            author=data.get("author", UNKNOWN_AUTHOR),
            status=ReadingStatus(data["status"]),
            rating=data.get("rating", 0),
            review=data.get("review", ""),
            type=data["type"],
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
            quotes=list(data.get("quotes", [])),
            keywords=list(data.get("keywords", [])),
            is_favorite=bool(data.get("isFavorite", False)),
            read_at=data.get("readAt"),
        )
