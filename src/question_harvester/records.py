"""
Canonical question record and deduplication key
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

# Dedup keys are truncated to bound their size; distinct questions sharing a
# 1000-character prefix within one subject collapse into one record.
MAX_KEY_LENGTH = 1000

_WHITESPACE = re.compile(r'\s+')


def normalise_text(value: Any) -> str:
    """Collapse whitespace, trim and lower-case"""
    if value is None:
        return ''
    return _WHITESPACE.sub(' ', str(value)).strip().lower()


def dedup_key(subject: str, question_text: Any) -> str:
    """Build the subject-scoped deduplication key for a question"""
    return normalise_text(f"{subject}::{question_text if question_text is not None else ''}")[:MAX_KEY_LENGTH]


def question_text_of(item: Dict[str, Any]) -> str:
    """Question text of a raw API item, whichever field carries it"""
    value = item.get('question_text')
    if value is None:
        value = item.get('question')
    return '' if value is None else str(value)


def answer_of(item: Dict[str, Any]) -> Any:
    value = item.get('correct_answer')
    return item.get('answer') if value is None else value


@dataclass(frozen=True)
class Record:
    """A unique harvested question, annotated with where it came from"""
    source_id: Optional[str]
    exam: str
    year: str
    subject: str
    question: str
    options: Any = None
    answer: Any = None
    explanation: Any = None
    fetched_page: Optional[int] = None
    subject_variant: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return dedup_key(self.subject, self.question)

    @classmethod
    def from_api_item(cls, item: Dict[str, Any], exam: str, year: str, subject: str,
                      page: Optional[int], variant: Optional[str]) -> 'Record':
        """
        Adapt one raw API question item into a canonical Record

        Args:
            item: Question object as returned by the catalog
            exam: Exam identifier
            year: Year the item was fetched for
            subject: Nominal subject name (not the resolved slug)
            page: Page number the item came from
            variant: Subject slug variant that returned the page

        Returns:
            Record with field aliases resolved
        """
        source_id = item.get('id')
        return cls(
            source_id=None if source_id is None else str(source_id),
            exam=exam,
            year=str(year),
            subject=subject,
            question=question_text_of(item),
            options=item.get('options'),
            answer=answer_of(item),
            explanation=item.get('explanation'),
            fetched_page=page,
            subject_variant=variant if variant is not None else subject,
            raw=dict(item)
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Record':
        """
        Rebuild a Record from its checkpoint form

        Items written by the older annotated format (the raw item plus
        _source_* keys) are accepted as well.

        Raises:
            KeyError: If a required field is missing
        """
        if '_source_subject' in data:
            raw = {k: v for k, v in data.items() if not k.startswith('_')}
            return cls.from_api_item(
                raw,
                exam=str(data.get('_source_exam', '')),
                year=str(data.get('_source_year', '')),
                subject=str(data['_source_subject']),
                page=data.get('_fetched_page'),
                variant=data.get('_subject_variant_used')
            )

        return cls(
            source_id=data.get('source_id'),
            exam=data['exam'],
            year=str(data['year']),
            subject=data['subject'],
            question=data['question'],
            options=data.get('options'),
            answer=data.get('answer'),
            explanation=data.get('explanation'),
            fetched_page=data.get('fetched_page'),
            subject_variant=data.get('subject_variant'),
            raw=dict(data.get('raw') or {})
        )
