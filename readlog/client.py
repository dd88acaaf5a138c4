"""HTTP client for Gemini book metadata suggestions with resilience patterns."""
import json
import time
import random
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List

import requests

logger = logging.getLogger(__name__)

BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_TYPE_RECOMMENDATION = "其它"

SYSTEM_INSTRUCTION = "你是一個復古圖書館的管理員，喜歡用打字機記錄書籍資訊。"

PROMPT_TEMPLATE = """
我正在整理我的閱讀清單 (Reading Tracker)。請根據書名 "{title}" 和作者 "{author}"，提供以下資訊：
1. 3-5 個精簡的風格關鍵字 (keywords)。
2. 一個簡短的書籍摘要或介紹 (summary)，約 30 字，非常簡潔。
3. 1 句這本書的經典名言 (quotes)。
4. 推測這本書的類型 (typeRecommendation)，請從以下選項中選擇一個最接近的：小說、漫畫、非虛構、其它。

請使用繁體中文回答，風格偏向復古、文學。
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "keywords": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "相關關鍵字列表",
        },
        "summary": {"type": "STRING", "description": "書籍簡短摘要"},
        "quotes": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "名言佳句列表",
        },
        "typeRecommendation": {"type": "STRING", "description": "推測的書籍類型"},
    },
    "required": ["keywords", "summary", "quotes", "typeRecommendation"],
}


@dataclass
class Suggestion:
    """AI-suggested metadata for a book."""
    keywords: List[str] = field(default_factory=list)
    summary: str = ""
    quotes: List[str] = field(default_factory=list)
    type_recommendation: str = DEFAULT_TYPE_RECOMMENDATION

    @classmethod
    def default(cls) -> "Suggestion":
        """Empty suggestion returned whenever generation fails."""
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Suggestion":
        return cls(
            keywords=[k for k in data.get("keywords") or [] if isinstance(k, str)],
            summary=data.get("summary") or "",
            quotes=[q for q in data.get("quotes") or [] if isinstance(q, str)],
            type_recommendation=data.get("typeRecommendation") or DEFAULT_TYPE_RECOMMENDATION,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["typeRecommendation"] = data.pop("type_recommendation")
        return data


def build_request_body(title: str, author: str) -> Dict[str, Any]:
    """Build a generateContent request asking for JSON matching RESPONSE_SCHEMA."""
    return {
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
        "contents": [
            {"role": "user", "parts": [{"text": PROMPT_TEMPLATE.format(title=title, author=author)}]}
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def parse_suggestion_response(response_json: Dict[str, Any]) -> Optional[Suggestion]:
    """
    Extract the suggestion from a generateContent response.

    Args:
        response_json: Complete API response JSON

    Returns:
        Suggestion, or None if the response holds no usable JSON text
    """
    try:
        parts = response_json["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
        data = json.loads(text)
    except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
        logger.warning(f"Unusable suggestion response: {e}")
        return None

    if not isinstance(data, dict):
        return None
    return Suggestion.from_dict(data)


def cache_key_for(title: str, author: str) -> str:
    return f"suggest:{title.strip().lower()}:{author.strip().lower()}"


class GeminiClient:
    """Client for Gemini generateContent with timeouts, retries, and backoff."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        timeout: int = 10,
        max_retries: int = 3,
        base_backoff: float = 1.0
    ):
        """
        Initialize Gemini API client.

        Args:
            api_key: Gemini API key; without one every suggestion is the default
            model: Model name
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            base_backoff: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_backoff = base_backoff

        # Create session for connection pooling
        self.session = requests.Session()

    @property
    def url(self) -> str:
        return f"{BASE_URL}/{self.model}:generateContent"

    def suggest(self, title: str, author: str = "") -> Suggestion:
        """
        Suggest keywords, summary, quotes and type for a book.

        Args:
            title: Book title
            author: Book author

        Returns:
            Suggestion; the default suggestion if anything goes wrong
        """
        if not self.api_key:
            logger.error("Gemini API key is missing")
            return Suggestion.default()

        response = self._make_request_with_retry(self.url, build_request_body(title, author))
        if not response:
            return Suggestion.default()

        return parse_suggestion_response(response) or Suggestion.default()

    def _make_request_with_retry(
        self,
        url: str,
        body: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Make HTTP request with retry logic.

        Args:
            url: Request URL
            body: JSON request body

        Returns:
            Response JSON or None if all retries exhausted
        """
        for attempt in range(self.max_retries):
            try:
                logger.info(f"Request attempt {attempt + 1}/{self.max_retries}: {url}")

                response = self.session.post(
                    url,
                    params={"key": self.api_key},
                    json=body,
                    timeout=self.timeout
                )

                # Handle different status codes
                if response.status_code == 200:
                    logger.info(f"Success: {response.status_code}")
                    return response.json()

                elif response.status_code == 429:
                    # Rate limited - must retry with backoff
                    logger.warning(f"Rate limited (429) on attempt {attempt + 1}")
                    if attempt < self.max_retries - 1:
                        self._backoff(attempt)
                        continue

                elif response.status_code >= 500:
                    # Server error - retryable
                    logger.warning(f"Server error ({response.status_code}) on attempt {attempt + 1}")
                    if attempt < self.max_retries - 1:
                        self._backoff(attempt)
                        continue

                elif response.status_code >= 400:
                    # Client error - don't retry
                    logger.error(f"Client error ({response.status_code}): {response.text}")
                    return None

            except requests.exceptions.Timeout:
                logger.warning(f"Timeout on attempt {attempt + 1}")
                if attempt < self.max_retries - 1:
                    self._backoff(attempt)
                    continue

            except requests.exceptions.ConnectionError as e:
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
                if attempt < self.max_retries - 1:
                    self._backoff(attempt)
                    continue

            except (requests.exceptions.RequestException, ValueError) as e:
                logger.error(f"Unexpected error: {e}")
                return None

        logger.error(f"All {self.max_retries} attempts failed")
        return None

    def _backoff(self, attempt: int):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        delay = self.base_backoff * (2 ** attempt)
        jitter = random.uniform(0, delay)
        total_delay = delay + jitter

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        time.sleep(total_delay)

    def suggest_with_cache(
        self,
        title: str,
        author: str = "",
        cache_db=None,
        cache_ttl: int = 86400
    ) -> Suggestion:
        """
        Suggest with database-backed caching.

        Only real suggestions are cached, never the fallback default.

        Args:
            title: Book title
            author: Book author
            cache_db: Store with cache_get/cache_set (optional)
            cache_ttl: Cache TTL in seconds

        Returns:
            Suggestion
        """
        cache_key = cache_key_for(title, author)

        if cache_db:
            cached = cache_db.cache_get(cache_key)
            if cached:
                return Suggestion.from_dict(cached)

        suggestion = self.suggest(title, author)

        if cache_db and suggestion != Suggestion.default():
            cache_db.cache_set(cache_key, suggestion.to_dict(), cache_ttl)

        return suggestion

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
