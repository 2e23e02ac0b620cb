"""
SubjectResolver module for finding the subject slug the catalog accepts
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .http_client import CatalogClient, MODE_QUESTIONS, ProtocolError

logger = logging.getLogger(__name__)


@dataclass
class ResolveResult:
    """Items returned for a (year, page) and the slug variant that produced them"""
    records: List[Dict[str, Any]] = field(default_factory=list)
    matched_variant: Optional[str] = None


def subject_variants(subject: str) -> List[str]:
    """
    Ordered, deduplicated slug candidates for a nominal subject name

    Example: "Further Mathematics" gives
    ["Further Mathematics", "further mathematics", "further-mathematics", "further_mathematics"]
    """
    raw = str(subject)
    candidates = [
        raw,
        raw.lower(),
        re.sub(r'\s+', '-', raw).lower(),
        re.sub(r'\s+', '_', raw).lower(),
        re.sub(r'[^\w\s-]', '', raw).lower(),
        re.sub(r'[\s._]+', '-', raw).lower(),
    ]
    return list(dict.fromkeys(candidates))


class SubjectResolver:
    """Tries slug variants in order until the catalog returns a non-empty page"""

    def __init__(self, client: CatalogClient, variant_delay_seconds: float = 0.08):
        self.client = client
        self.variant_delay_seconds = variant_delay_seconds
        self.known_variants: Dict[str, str] = {}

    def resolve(self, exam: str, year: str, subject: str, page: int) -> ResolveResult:
        """
        Fetch one page of questions for a subject, trying slug variants in order

        Variants are always tried in subject_variants order; the variant that
        matched is recorded in known_variants and logged when it changes.
        Failures of individual variants are never fatal: not-found errors are
        skipped silently, anything else is logged and skipped.

        Args:
            exam: Exam identifier
            year: Exam year
            subject: Nominal subject name
            page: 1-based page number

        Returns:
            ResolveResult; empty records and no variant when nothing matched
        """
        for attempt, variant in enumerate(subject_variants(subject)):
            if attempt:
                time.sleep(self.variant_delay_seconds)

            body = {'exam': exam, 'exam_year_id': str(year), 'subject': variant, 'page': page}
            try:
                response = self.client.call(MODE_QUESTIONS, body)
            except ProtocolError as e:
                if not e.is_not_found:
                    logger.warning(f"Error trying variant \"{variant}\" for {exam}/{year}/{subject} p{page}: {e}")
                continue
            except Exception as e:
                logger.warning(f"Error trying variant \"{variant}\" for {exam}/{year}/{subject} p{page}: {e}")
                continue

            items = [item for item in response.items if isinstance(item, dict)]
            if items:
                if variant != subject and self.known_variants.get(subject) != variant:
                    logger.info(f"Subject variant matched: \"{subject}\" -> \"{variant}\" for year {year} page {page}")
                self.known_variants[subject] = variant
                return ResolveResult(records=items, matched_variant=variant)

        return ResolveResult()
