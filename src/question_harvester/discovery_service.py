"""
DiscoveryService module for enumerating exams, years and subjects
"""

import logging
import re
from typing import Any, Iterable, List, Optional

from .http_client import CatalogClient, MODE_EXAMS, MODE_SUBJECTS, MODE_YEARS

logger = logging.getLogger(__name__)

_FOUR_DIGIT_YEAR = re.compile(r'^\d{4}$')


def _as_name(item: Any) -> Optional[str]:
    """Subject entries are usually strings; some catalogs return objects"""
    if isinstance(item, dict):
        for key in ('name', 'subject', 'title'):
            if item.get(key):
                return str(item[key])
        return None
    if item is None:
        return None
    return str(item)


def select_years(years: Iterable[str], years_back: Optional[int]) -> List[str]:
    """
    Restrict years to the newest years_back four-digit years, newest first

    Without a window the discovered order is kept unchanged.
    """
    years = [str(year) for year in years]
    if not years_back:
        return years
    numeric = sorted((year for year in years if _FOUR_DIGIT_YEAR.match(year)), key=int, reverse=True)
    return numeric[:years_back]


class DiscoveryService:
    """Read-only catalog metadata lookups that degrade to empty results"""

    def __init__(self, client: CatalogClient):
        self.client = client

    def list_exams(self) -> List[str]:
        try:
            response = self.client.call(MODE_EXAMS, {})
            return [str(exam) for exam in response.items]
        except Exception as e:
            logger.warning(f"Exam discovery failed, response not usable: {e}")
            return []

    def list_years(self, exam: str) -> List[str]:
        try:
            response = self.client.call(MODE_YEARS, {'exam': exam})
            return [str(year) for year in response.items]
        except Exception as e:
            logger.warning(f"Year discovery for {exam} failed, response not usable: {e}")
            return []

    def list_subjects(self, exam: str, year: str) -> List[str]:
        try:
            response = self.client.call(MODE_SUBJECTS, {'exam': exam, 'exam_year_id': str(year)})
        except Exception as e:
            logger.warning(f"Subject discovery for {exam}/{year} failed: {e}")
            return []

        names = [_as_name(item) for item in response.items]
        return [name for name in names if name]
