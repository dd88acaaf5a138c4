"""Strict field validation for book records.

Checks run on the data object itself, in a fixed order, and the first
failing rule is reported as a ValidationError with a user-facing message.
"""
import math
import re
from typing import Any, Dict, Union

from readlog.errors import ValidationError
from readlog.models import Book, ReadingStatus

MAX_TITLE_LENGTH = 100
MAX_AUTHOR_LENGTH = 50
MAX_TYPE_LENGTH = 30
MAX_REVIEW_LENGTH = 2000
MAX_KEYWORDS_COUNT = 10
MAX_KEYWORD_LENGTH = 20

SCRIPT_PATTERN = re.compile(r"<script\b[^>]*>([\s\S]*?)</script>", re.MULTILINE)

_VALID_STATUSES = {status.value for status in ReadingStatus}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_book(data: Union[Book, Dict[str, Any]]) -> bool:
    """
    Validate a book record.

    Args:
        data: Book instance or a mapping using the stored (camelCase) keys

    Returns:
        True when every rule passes

    Raises:
        ValidationError: describing the first failing rule
    """
    if isinstance(data, Book):
        data = data.to_dict()

    title = data.get("title")
    author = data.get("author")
    review = data.get("review")

    # Presence
    if not title or not isinstance(title, str) or title.strip() == "":
        raise ValidationError("書籍標題為必填項目且必須是文字。")
    if author and not isinstance(author, str):
        raise ValidationError("作者名稱格式錯誤。")

    # Length
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"書籍標題過長 (最大 {MAX_TITLE_LENGTH} 字)。")
    if author and len(author) > MAX_AUTHOR_LENGTH:
        raise ValidationError(f"作者名稱過長 (最大 {MAX_AUTHOR_LENGTH} 字)。")
    if review and not isinstance(review, str):
        raise ValidationError("心得內容格式錯誤。")
    if review and len(review) > MAX_REVIEW_LENGTH:
        raise ValidationError(f"心得內容過長 (最大 {MAX_REVIEW_LENGTH} 字)。")

    # Enum integrity
    status = data.get("status")
    if isinstance(status, ReadingStatus):
        status = status.value
    if not status or status not in _VALID_STATUSES:
        raise ValidationError("無效的閱讀狀態。")

    book_type = data.get("type")
    if not book_type or not isinstance(book_type, str) or book_type.strip() == "":
        raise ValidationError("書籍類型為必填項目。")
    if len(book_type) > MAX_TYPE_LENGTH:
        raise ValidationError(f"書籍類型名稱過長 (最大 {MAX_TYPE_LENGTH} 字)。")

    # Ranges
    rating = data.get("rating")
    if not _is_number(rating) or math.isnan(rating) or rating < 0 or rating > 5:
        raise ValidationError("評分必須介於 0 到 5 之間。")

    read_at = data.get("readAt")
    if read_at is not None:
        if not _is_number(read_at) or math.isnan(read_at):
            raise ValidationError("閱讀日期格式錯誤。")

    for key in ("createdAt", "updatedAt"):
        stamp = data.get(key)
        if stamp is not None and (not _is_number(stamp) or math.isnan(stamp)):
            raise ValidationError("建立或更新時間格式錯誤。")

    # Sequences
    keywords = data.get("keywords")
    if not isinstance(keywords, list):
        raise ValidationError("關鍵字格式錯誤。")
    if len(keywords) > MAX_KEYWORDS_COUNT:
        raise ValidationError(f"關鍵字數量過多 (最多 {MAX_KEYWORDS_COUNT} 個)。")
    for keyword in keywords:
        if not isinstance(keyword, str) or len(keyword) > MAX_KEYWORD_LENGTH:
            raise ValidationError(f'關鍵字 "{keyword}" 無效或過長。')

    if not isinstance(data.get("quotes"), list):
        raise ValidationError("名言佳句格式錯誤。")

    # Basic script injection check
    for text in (title, author or "", review or ""):
        if SCRIPT_PATTERN.search(text):
            raise ValidationError("偵測到潛在的惡意程式碼輸入。")

    return True
