"""Passage selection for the typing challenge.

Selection walks a fallback chain so that a ringing alarm always gets a
passage:

1. Famous mode: a curated passage, no network.
2. Up to three random verse ranges from the selected books.
3. One well-known preset reference from the API.
4. A built-in passage that needs no network at all.
"""

import json
import logging
import random

from .bible import BibleApiClient, clean_text, load_catalog
from .config import get_data_dir
from .interfaces import SettingsStore, TextProvider
from .models import AppSettings, Book, Passage, PassageRequest

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
MIN_PASSAGE_LENGTH = 10

PRESET_PASSAGES: list[PassageRequest] = [
    PassageRequest("JHN", 11, 35),  # Jesus wept.
    PassageRequest("PSA", 46, 10),
    PassageRequest("1TH", 5, 16),
    PassageRequest("1TH", 5, 17),
    PassageRequest("PSA", 118, 24),
    PassageRequest("JHN", 3, 16),
    PassageRequest("PHP", 4, 13),
    PassageRequest("PRO", 3, 5),
    PassageRequest("JER", 29, 11),
    PassageRequest("PSA", 23, 1),
    PassageRequest("ROM", 8, 28),
    PassageRequest("ISA", 40, 31),
    PassageRequest("MAT", 6, 33),
    PassageRequest("PRO", 3, 5, verse_count=2),
    PassageRequest("PSA", 23, 1, verse_count=2),
]

FALLBACK_PASSAGES: list[Passage] = [
    Passage(
        id="fallback_1",
        text=(
            "For God so loved the world, that he gave his only begotten Son, "
            "that whosoever believeth in him should not perish, "
            "but have everlasting life."
        ),
        source_label="John 3:16 (KJV)",
        short_reference="John 3:16",
    ),
    Passage(
        id="fallback_2",
        text="I can do all things through Christ which strengtheneth me.",
        source_label="Philippians 4:13 (KJV)",
        short_reference="Philippians 4:13",
    ),
    Passage(
        id="fallback_3",
        text=(
            "Trust in the LORD with all thine heart; "
            "and lean not unto thine own understanding."
        ),
        source_label="Proverbs 3:5 (KJV)",
        short_reference="Proverbs 3:5",
    ),
]


def load_famous_passages() -> list[Passage]:
    """Load the curated passages from data/famous_passages.json."""
    path = get_data_dir() / "famous_passages.json"
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    return [
        Passage(
            id=f"famous_{index}",
            text=item["text"],
            source_label=f"{item['reference']} (KJV)",
            short_reference=item["reference"],
        )
        for index, item in enumerate(data)
    ]


class PassageProvider:
    """Picks the passage a ringing alarm has to be retyped from."""

    def __init__(
        self,
        settings_store: SettingsStore,
        client: TextProvider | None = None,
        catalog: list[Book] | None = None,
        rng: random.Random | None = None,
    ):
        self.settings_store = settings_store
        self.client = client or BibleApiClient()
        self.rng = rng or random.Random()
        self._catalog = catalog
        self._famous: list[Passage] | None = None

    @property
    def catalog(self) -> list[Book]:
        if self._catalog is None:
            self._catalog = load_catalog()
        return self._catalog

    @property
    def famous_passages(self) -> list[Passage]:
        if self._famous is None:
            try:
                self._famous = load_famous_passages()
            except (OSError, ValueError, KeyError) as e:
                logger.error(f"Failed to load famous passages: {e}")
                self._famous = list(FALLBACK_PASSAGES)
        return self._famous

    def get_passage(self) -> Passage:
        """Return a usable passage. Never raises."""
        try:
            settings = self.settings_store.get()
        except Exception as e:
            logger.error(f"Failed to read settings, using famous passages: {e}")
            settings = AppSettings(use_famous_source=True)

        if settings.use_famous_source:
            logger.info("Using famous passage")
            return self.get_famous_passage()

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info(f"Fetching random passage (attempt {attempt}/{MAX_ATTEMPTS})")
            try:
                passage = self._fetch(self._random_request(settings.selected_book_ids))
            except Exception as e:
                logger.error(f"Attempt {attempt} failed: {e}")
                continue
            if passage:
                return passage

        logger.warning("All random attempts failed, trying a preset passage")
        try:
            passage = self._fetch(self.rng.choice(PRESET_PASSAGES))
        except Exception as e:
            logger.error(f"Preset passage failed: {e}")
            passage = None
        if passage:
            return passage

        logger.warning("API unavailable, using built-in passage")
        return self.get_fallback_passage()

    def get_famous_passage(self) -> Passage:
        if not self.famous_passages:
            logger.warning("No famous passages loaded, using built-in passage")
            return self.get_fallback_passage()
        return self.rng.choice(self.famous_passages)

    def get_fallback_passage(self) -> Passage:
        return self.rng.choice(FALLBACK_PASSAGES)

    def _available_books(self, selected_book_ids: frozenset[str]) -> list[Book]:
        if not selected_book_ids:
            logger.warning("No books selected, using all books")
            return self.catalog

        books = [b for b in self.catalog if b.usfm in selected_book_ids]
        if not books:
            logger.warning("No known books in selection, using all books")
            return self.catalog
        return books

    def _random_request(self, selected_book_ids: frozenset[str]) -> PassageRequest:
        """Pick a random verse range, resampled on every attempt."""
        book = self.rng.choice(self._available_books(selected_book_ids))
        chapter = self.rng.randint(1, book.chapters)
        # Start in the first half of an average chapter to stay in bounds
        max_start = max(1, book.avg_verses_per_chapter // 2)
        verse = self.rng.randint(1, max_start)
        verse_count = 1 if self.rng.random() < 0.5 else 2

        request = PassageRequest(
            book=book.usfm, chapter=chapter, verse=verse, verse_count=verse_count
        )
        logger.info(f"Randomly selected {book.display_name} {chapter}:{request.verse_label}")
        return request

    def _fetch(self, request: PassageRequest) -> Passage | None:
        text = self.client.fetch(
            request.book, request.chapter, request.verse, request.verse_count
        )
        text = clean_text(text or "")
        if len(text) < MIN_PASSAGE_LENGTH:
            logger.info(f"Passage {request.passage_id} was too short or missing")
            return None

        book = next((b for b in self.catalog if b.usfm == request.book), None)
        book_name = book.display_name if book else request.book
        short_reference = f"{book_name} {request.chapter}:{request.verse_label}"
        return Passage(
            id=f"{request.book}_{request.chapter}_{request.verse}",
            text=text,
            source_label=f"{short_reference} (KJV)",
            short_reference=short_reference,
        )
