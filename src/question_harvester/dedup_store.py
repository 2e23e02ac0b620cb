"""
DedupStore module for first-write-wins record deduplication
"""

from typing import Any, Dict, Iterable, List, Optional

from .records import Record, dedup_key, question_text_of


class DedupStore:
    """In-memory mapping from normalised content key to the canonical record"""

    def __init__(self):
        self._records: Dict[str, Record] = {}

    def submit(self, subject: str, raw_item: Dict[str, Any], *, exam: str, year: str,
               page: Optional[int] = None, variant: Optional[str] = None) -> bool:
        """
        Insert a raw API item unless its key is already present

        Args:
            subject: Nominal subject name the item is attributed to
            raw_item: Question object as returned by the catalog
            exam: Exam identifier
            year: Year the item was fetched for
            page: Page the item came from
            variant: Subject slug variant that returned the page

        Returns:
            True if the item was inserted, False if it was a duplicate
        """
        key = dedup_key(subject, question_text_of(raw_item))
        if key in self._records:
            return False

        self._records[key] = Record.from_api_item(raw_item, exam, year, subject, page, variant)
        return True

    def preload(self, records: Iterable[Record]) -> int:
        """
        Seed the store with already-collected records (first write wins)

        Returns:
            Number of records actually added
        """
        added = 0
        for record in records:
            key = record.key
            if key not in self._records:
                self._records[key] = record
                added += 1
        return added

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def records(self) -> List[Record]:
        """All records in insertion order"""
        return list(self._records.values())

    def count_for(self, subject: str) -> int:
        return sum(1 for record in self._records.values() if record.subject == subject)

    def by_subject(self, subjects: Iterable[str] = ()) -> Dict[str, List[Record]]:
        """
        Group records by nominal subject

        Every name in subjects gets an entry even when it has no records.
        """
        grouped: Dict[str, List[Record]] = {subject: [] for subject in subjects}
        for record in self._records.values():
            grouped.setdefault(record.subject or 'unknown', []).append(record)
        return grouped
