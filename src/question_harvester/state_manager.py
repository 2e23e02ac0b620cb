"""
StateManager module for the harvest session and per-subject traversal pointers
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

ACTIVE = 'ACTIVE'
EXHAUSTED = 'EXHAUSTED'


@dataclass
class SubjectPointer:
    """Traversal position for one subject"""
    year_index: int = 0
    page: int = 1
    collected: int = 0
    exhausted: bool = False

    @property
    def status(self) -> str:
        return EXHAUSTED if self.exhausted else ACTIVE

    def advance_year(self) -> None:
        """Move to the first page of the next year"""
        self.year_index += 1
        self.page = 1

    def advance_page(self) -> None:
        self.page += 1

    def mark_exhausted(self) -> None:
        self.exhausted = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'yearIndex': self.year_index,
            'page': self.page,
            'collected': self.collected,
            'exhausted': self.exhausted
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubjectPointer':
        return cls(
            year_index=int(data.get('yearIndex') or 0),
            page=int(data.get('page') or 1),
            collected=int(data.get('collected') or 0),
            exhausted=bool(data.get('exhausted', False))
        )


@dataclass
class Session:
    """State of one harvest: exam, candidate years, subjects and their pointers"""
    exam: str
    years: List[str] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    pointers: Dict[str, SubjectPointer] = field(default_factory=dict)
    done: bool = False

    def __post_init__(self):
        self.ensure_pointers()

    def ensure_pointers(self) -> List[str]:
        """
        Initialise a pointer for every subject that lacks one

        Returns:
            Subjects that received a fresh pointer
        """
        added = []
        for subject in self.subjects:
            if subject not in self.pointers:
                self.pointers[subject] = SubjectPointer()
                added.append(subject)
        return added

    def add_subjects(self, subjects: Iterable[str]) -> List[str]:
        """Append unseen subjects and give them pointers"""
        for subject in subjects:
            if subject not in self.subjects:
                self.subjects.append(subject)
        return self.ensure_pointers()

    def pointer(self, subject: str) -> SubjectPointer:
        return self.pointers[subject]

    def current_year(self, subject: str) -> str:
        return self.years[self.pointers[subject].year_index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'exam': self.exam,
            'years': list(self.years),
            'subjects': list(self.subjects),
            'ptr': {subject: pointer.to_dict() for subject, pointer in self.pointers.items()},
            'done': self.done
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], exam: str = '') -> 'Session':
        """
        Rebuild a session from its checkpoint form

        Raises:
            ValueError: If years, subjects or ptr have the wrong shape
        """
        years = data.get('years') or []
        subjects = data.get('subjects') or []
        pointers = data.get('ptr') or {}
        if not isinstance(years, list) or not isinstance(subjects, list) or not isinstance(pointers, dict):
            raise ValueError("Checkpoint state has an unexpected shape")

        return cls(
            exam=str(data.get('exam') or exam),
            years=[str(year) for year in years],
            subjects=[str(subject) for subject in subjects],
            pointers={str(subject): SubjectPointer.from_dict(pointer) for subject, pointer in pointers.items()},
            done=bool(data.get('done', False))
        )
