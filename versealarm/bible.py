"""API.Bible client for fetching verse text."""

import json
import logging
import re
from typing import Any

import requests

from .config import Config, get_data_dir
from .models import Book, PassageRequest

logger = logging.getLogger(__name__)

_VERSE_NUMBER_SPAN = re.compile(
    r'<span[^>]*class="v"[^>]*>.*?</span>', re.IGNORECASE | re.DOTALL
)
_FOOTNOTE_SUP = re.compile(r"<sup[^>]*>.*?</sup>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")
_BRACKETED = re.compile(r"\[[^\]]*\]|\{[^}]*\}")
_MARKS = re.compile(r"[¶§†‡]|\.{3,}|…")
_FOOTNOTE_ABBREV = re.compile(
    r"\b(?:Heb\.|Gr\.|Or\.|i\.e\.|cf\.|lit\.|fig\.|prob\.|poss\.)\s*"
)
_REFERENCE = re.compile(r"\b\d+:\d+(?:\s*-\s*\d+)?")
_GLUED_VERSE_NUMBER = re.compile(r"(?<!\w)\d+(?=[A-Z])")  # 31But -> But
_STANDALONE_NUMBER = re.compile(r"(?<!\S)\d+(?!\S)")
_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = re.compile(r"^[,;\s\-]+|[,;\s]+$")


def _clean_once(text: str) -> str:
    text = _VERSE_NUMBER_SPAN.sub(" ", text)
    text = _FOOTNOTE_SUP.sub("", text)
    text = _TAG.sub(" ", text)
    text = _BRACKETED.sub("", text)
    text = _MARKS.sub("", text)
    text = _FOOTNOTE_ABBREV.sub("", text)
    text = _REFERENCE.sub("", text)
    text = _GLUED_VERSE_NUMBER.sub("", text)
    text = _STANDALONE_NUMBER.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    return _EDGE_PUNCTUATION.sub("", text).strip()


def clean_text(text: str) -> str:
    """Strip markup, verse numbers and footnotes, and normalize whitespace.

    Passes are applied until the text stops changing, so cleaning clean
    text returns it unchanged.
    """
    if not text:
        return ""
    while True:
        cleaned = _clean_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned


class BibleApiClient:
    """Client for the API.Bible passages endpoint."""

    def __init__(self, config: Config | None = None):
        config = config or Config()
        self.base_url = config.bible_api_base_url.rstrip("/")
        self.bible_id = config.bible_id
        self.timeout = config.request_timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "VerseAlarm/1.0",
                "Connection": "keep-alive",
            }
        )
        if config.bible_api_key:
            self.session.headers["api-key"] = config.bible_api_key
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=4,
            pool_maxsize=4,
            max_retries=1,
        )
        self.session.mount("https://", adapter)
        self._catalog: list[Book] | None = None

    @property
    def catalog(self) -> list[Book]:
        """Load and cache the book catalog."""
        if self._catalog is None:
            self._catalog = load_catalog()
        return self._catalog

    def get_book(self, usfm: str) -> Book | None:
        """Get a book by its USFM code."""
        for book in self.catalog:
            if book.usfm == usfm:
                return book
        return None

    def get_passage_content(self, passage_id: str) -> str | None:
        """Fetch the raw passage content from API.Bible."""
        url = f"{self.base_url}/bibles/{self.bible_id}/passages/{passage_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch {passage_id}: {e}")
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            logger.error(f"Malformed response for {passage_id}: no content")
            return None
        return content

    def fetch(
        self, book: str, chapter: int, verse_start: int, verse_count: int
    ) -> str | None:
        """Fetch a verse range and return its cleaned text."""
        if self.get_book(book) is None:
            logger.error(f"Unknown book: {book}")
            return None

        request = PassageRequest(
            book=book, chapter=chapter, verse=verse_start, verse_count=verse_count
        )
        content = self.get_passage_content(request.passage_id)
        if content is None:
            return None

        text = clean_text(content)
        if not text:
            logger.warning(f"No text for {request.passage_id}")
            return None

        logger.info(f"Fetched {request.passage_id}: {text[:50]}...")
        return text


def load_catalog() -> list[Book]:
    """Load the book catalog from data/books.json."""
    catalog_path = get_data_dir() / "books.json"
    if not catalog_path.exists():
        raise FileNotFoundError(f"Book catalog not found at {catalog_path}")

    with open(catalog_path, encoding="utf-8") as f:
        data = json.load(f)

    return [
        Book(
            name=item["name"],
            usfm=item["usfm"],
            chapters=item["chapters"],
            avg_verses_per_chapter=item["avg_verses_per_chapter"],
            testament=item["testament"],
        )
        for item in data
    ]
