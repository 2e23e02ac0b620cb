"""
CheckpointManager module for durable, resumable harvest snapshots
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from .records import Record
from .state_manager import Session

logger = logging.getLogger(__name__)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


@dataclass
class Checkpoint:
    """Snapshot of a session, its records and the page-fetch counter"""
    session: Session
    records: List[Record] = field(default_factory=list)
    pages_fetched: int = 0
    saved_at: Optional[str] = None


class CheckpointManager:
    """Saves and restores harvest checkpoints as a single JSON document"""

    def __init__(self, checkpoint_path: Path):
        self.checkpoint_path = Path(checkpoint_path)

    def save(self, session: Session, records: Iterable[Record], pages_fetched: int) -> bool:
        """
        Write a complete snapshot atomically

        The document is written to a temporary file beside the checkpoint
        and moved into place, so a crash never leaves a half-written file.

        Args:
            session: Session including every subject pointer
            records: All records collected so far
            pages_fetched: Monotonic count of remote page fetches

        Returns:
            True if the snapshot was written, False if writing failed
        """
        document = {
            'state': session.to_dict(),
            'items': [record.to_dict() for record in records],
            'pagesFetched': pages_fetched,
            'savedAt': datetime.now(timezone.utc).isoformat()
        }

        temp_name = None
        try:
            self.checkpoint_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile('w', encoding='utf-8', dir=self.checkpoint_path.parent,
                                             prefix=f".{self.checkpoint_path.name}.", suffix='.tmp',
                                             delete=False) as f:
                temp_name = f.name
                json.dump(document, f, indent=2, ensure_ascii=False)
            # NamedTemporaryFile is created 0600; give the checkpoint the usual umask mode
            os.chmod(temp_name, 0o666 & ~_current_umask())
            os.replace(temp_name, self.checkpoint_path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Checkpoint write failed: {e}")
            if temp_name and os.path.exists(temp_name):
                try:
                    os.remove(temp_name)
                except OSError:
                    pass
            return False

    def mark_done(self, session: Session, records: Iterable[Record], pages_fetched: int) -> bool:
        """Final save marking the session as fully done"""
        session.done = True
        return self.save(session, records, pages_fetched)

    def load(self, exam: str = '') -> Optional[Checkpoint]:
        """
        Load the last snapshot

        Args:
            exam: Exam identifier used when an older snapshot does not record one

        Returns:
            Checkpoint, or None if there is no file or it cannot be parsed
        """
        if not self.checkpoint_path.exists():
            return None

        try:
            with open(self.checkpoint_path, 'r', encoding='utf-8') as f:
                document = json.load(f)

            if not isinstance(document, dict):
                raise ValueError("Checkpoint root is not an object")

            session = Session.from_dict(document.get('state') or {}, exam=exam)
            items = document.get('items') or []
            if not isinstance(items, list):
                raise ValueError("Checkpoint items is not a list")
            records = [Record.from_dict(item) for item in items]

            return Checkpoint(
                session=session,
                records=records,
                pages_fetched=int(document.get('pagesFetched') or 0),
                saved_at=document.get('savedAt')
            )
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Could not parse checkpoint file {self.checkpoint_path}, ignoring it: {e}")
            return None
