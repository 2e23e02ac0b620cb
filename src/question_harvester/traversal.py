"""
TraversalEngine module: the per-subject year/page state machine
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .dedup_store import DedupStore
from .records import dedup_key, question_text_of
from .state_manager import Session
from .subject_resolver import SubjectResolver

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """Result of one traversal step for a subject"""
    inserted: int = 0
    fetched: bool = False
    empty: bool = False


class TraversalEngine:
    """
    Drives one subject's pointer through years and pages

    A subject is ACTIVE until its year index runs past the configured years,
    at which point it becomes EXHAUSTED for good. An empty page moves the
    pointer to page 1 of the next year; a non-empty page feeds the dedup
    store and moves to the next page.
    """

    def __init__(self, session: Session, resolver: SubjectResolver, store: DedupStore, quota: int,
                 polite_delay_seconds: float = 0.15,
                 on_page_fetched: Optional[Callable[[], None]] = None,
                 stale_page_limit: Optional[int] = None):
        self.session = session
        self.resolver = resolver
        self.store = store
        self.quota = quota
        self.polite_delay_seconds = polite_delay_seconds
        self.on_page_fetched = on_page_fetched
        self.stale_page_limit = stale_page_limit
        self._stale_pages: Dict[str, int] = {}
        self._last_page: Dict[str, Tuple[str, ...]] = {}

    def is_done(self, subject: str) -> bool:
        """True when the subject needs no more steps (quota reached or exhausted)"""
        pointer = self.session.pointer(subject)
        return pointer.exhausted or pointer.collected >= self.quota

    def step(self, subject: str) -> StepOutcome:
        """
        Advance a subject by exactly one transition

        Args:
            subject: Nominal subject name with an initialised pointer

        Returns:
            StepOutcome describing the fetch and how many records were inserted
        """
        pointer = self.session.pointer(subject)
        if pointer.exhausted:
            return StepOutcome()

        if pointer.year_index >= len(self.session.years):
            pointer.mark_exhausted()
            logger.info(f"Subject {subject} exhausted after {len(self.session.years)} years")
            return StepOutcome()

        year = self.session.years[pointer.year_index]
        page = pointer.page
        result = self.resolver.resolve(self.session.exam, year, subject, page)

        if not result.records:
            self._forget_page(subject)
            pointer.advance_year()
            self._after_fetch()
            return StepOutcome(fetched=True, empty=True)

        inserted = 0
        for item in result.records:
            if pointer.collected >= self.quota:
                break
            if self.store.submit(subject, item, exam=self.session.exam, year=year,
                                 page=page, variant=result.matched_variant):
                pointer.collected += 1
                inserted += 1

        logger.debug(f"{subject} {year} p{page}: {inserted} new of {len(result.records)} ({pointer.collected}/{self.quota})")
        if self._repeats_previous_page(subject, result.records):
            # The catalog ignores the page parameter for this year
            logger.info(f"{subject} {year}: {self._stale_pages[subject]} identical pages in a row, moving to next year")
            self._forget_page(subject)
            pointer.advance_year()
        else:
            pointer.advance_page()

        self._after_fetch()
        return StepOutcome(inserted=inserted, fetched=True)

    def drive(self, subject: str) -> int:
        """
        Step a subject until it reaches quota or is exhausted

        Every step moves the page or the year index forward. With a
        stale_page_limit, a year is also abandoned once that many consecutive
        pages repeat the previous page exactly, which bounds the loop when
        the catalog ignores the page parameter.

        Returns:
            Number of records inserted
        """
        inserted = 0
        while not self.is_done(subject):
            inserted += self.step(subject).inserted
        return inserted

    def _repeats_previous_page(self, subject: str, items: List[Dict[str, Any]]) -> bool:
        """Count pages identical to the one before; True once the limit is reached"""
        if not self.stale_page_limit:
            return False

        fingerprint = tuple(dedup_key(subject, question_text_of(item)) for item in items)
        if fingerprint == self._last_page.get(subject):
            self._stale_pages[subject] = self._stale_pages.get(subject, 0) + 1
        else:
            self._stale_pages.pop(subject, None)
        self._last_page[subject] = fingerprint
        return self._stale_pages.get(subject, 0) >= self.stale_page_limit

    def _forget_page(self, subject: str) -> None:
        self._stale_pages.pop(subject, None)
        self._last_page.pop(subject, None)

    def _after_fetch(self) -> None:
        time.sleep(self.polite_delay_seconds)
        if self.on_page_fetched is not None:
            self.on_page_fetched()
