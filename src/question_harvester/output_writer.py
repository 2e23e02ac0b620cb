"""
OutputWriter module for persisting the final harvested corpus
"""

import csv
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .records import Record

logger = logging.getLogger(__name__)

CSV_HEADER = ['source_id', 'exam', 'source_year', 'source_subject', 'question',
              'options', 'answer', 'explanation', 'fetched_page']


def safe_name(value: str) -> str:
    """File-system safe version of a subject name"""
    return re.sub(r'[^A-Za-z0-9_\-]', '_', str(value))


def _flatten(value: Any) -> str:
    if value is None:
        return ''
    return re.sub(r'[\r\n]+', ' ', str(value))


class OutputWriter:
    """Writes combined, per-subject and summary files for one exam"""

    def __init__(self, output_dir: Path, exam: str):
        self.exam = exam
        self.exam_dir = Path(output_dir) / exam
        self.subjects_dir = self.exam_dir / 'subjects'

    def write(self, records: List[Record], by_subject: Dict[str, List[Record]],
              run_statistics: Optional[Dict[str, Any]] = None) -> Dict[str, Path]:
        """
        Write every output file

        Args:
            records: Full deduplicated record list
            by_subject: Mapping of subject name to its records
            run_statistics: Optional controller statistics for the summary

        Returns:
            Mapping of output kind to the written path
        """
        self.subjects_dir.mkdir(parents=True, exist_ok=True)

        paths = {
            'json': self.write_json(records),
            'csv': self.write_csv(records),
            'summary': self.write_summary(records, by_subject, run_statistics),
        }
        for subject, subject_records in by_subject.items():
            self._dump(self.subjects_dir / f"{safe_name(subject)}.json",
                       [record.to_dict() for record in subject_records])

        logger.info(f"Wrote {paths['json']} ({len(records)}) and {paths['csv']}")
        logger.info(f"Wrote {len(by_subject)} per-subject files and summary")
        return paths

    def write_json(self, records: List[Record]) -> Path:
        path = self.exam_dir / f"exam_{self.exam}.json"
        self._dump(path, [record.to_dict() for record in records])
        return path

    def write_csv(self, records: List[Record]) -> Path:
        path = self.exam_dir / f"exam_{self.exam}.csv"
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for record in records:
                writer.writerow([
                    _flatten(record.source_id),
                    _flatten(record.exam or self.exam),
                    _flatten(record.year),
                    _flatten(record.subject),
                    _flatten(record.question),
                    _flatten(json.dumps(record.options, ensure_ascii=False) if record.options else ''),
                    _flatten(record.answer),
                    _flatten(record.explanation),
                    _flatten(record.fetched_page),
                ])
        return path

    def write_summary(self, records: List[Record], by_subject: Dict[str, List[Record]],
                      run_statistics: Optional[Dict[str, Any]] = None) -> Path:
        path = self.exam_dir / f"summary_{self.exam}.json"
        summary = {
            'exam': self.exam,
            'total_collected': len(records),
            'subjects': {subject: len(subject_records) for subject, subject_records in by_subject.items()},
            'generated_timestamp': datetime.now(timezone.utc).isoformat(),
        }
        if run_statistics:
            summary['run'] = run_statistics
        self._dump(path, summary)
        return path

    @staticmethod
    def _dump(path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
