"""
QuotaController module for round-based collection with progress termination
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .checkpoint_manager import CheckpointManager
from .dedup_store import DedupStore
from .state_manager import Session
from .subject_resolver import SubjectResolver
from .traversal import TraversalEngine


@dataclass
class ControllerResult:
    """Summary of a controller run"""
    rounds: int = 0
    inserted: int = 0
    pages_fetched: int = 0
    stop_reason: str = ''


class QuotaController:
    """
    Runs traversal in rounds across all subjects

    Each round drives every subject that is neither exhausted nor at quota.
    Collection stops after a round that inserted nothing, or once every
    subject has reached quota or been exhausted. Checkpoints are written
    every checkpoint_pages page fetches and at the end of every round.
    """

    STOP_NO_PROGRESS = 'no_progress'
    STOP_ALL_COMPLETE = 'all_complete'

    def __init__(self, session: Session, resolver: SubjectResolver, store: DedupStore, quota: int,
                 checkpoint_manager: Optional[CheckpointManager] = None, checkpoint_pages: int = 40,
                 polite_delay_seconds: float = 0.15, pages_fetched: int = 0, stale_page_limit: Optional[int] = None):
        self.session = session
        self.store = store
        self.quota = quota
        self.checkpoint_manager = checkpoint_manager
        self.checkpoint_pages = checkpoint_pages
        self.pages_fetched = pages_fetched
        self.logger = logging.getLogger(__name__)
        self.engine = TraversalEngine(
            session=session,
            resolver=resolver,
            store=store,
            quota=quota,
            polite_delay_seconds=polite_delay_seconds,
            on_page_fetched=self._on_page_fetched,
            stale_page_limit=stale_page_limit
        )

    def pending_subjects(self):
        """Subjects still eligible for steps this round"""
        return [subject for subject in self.session.subjects if not self.engine.is_done(subject)]

    def all_complete(self) -> bool:
        return not self.pending_subjects()

    def run(self) -> ControllerResult:
        """
        Run rounds until no progress is made or every subject is complete

        Returns:
            ControllerResult with round count, insertions and the stop reason
        """
        self.session.ensure_pointers()
        result = ControllerResult()

        while True:
            result.rounds += 1
            self.logger.info(f"Round {result.rounds}, total collected {len(self.store)}")

            round_inserted = 0
            for subject in self.pending_subjects():
                try:
                    round_inserted += self.engine.drive(subject)
                except Exception as e:
                    # One subject failing must not abort the run; its pointer stays where it was
                    self.logger.error(f"Traversal for subject {subject} failed this round: {e}")

            result.inserted += round_inserted
            self._save_checkpoint()

            if round_inserted == 0:
                self.logger.info("No new questions found this round, stopping.")
                result.stop_reason = self.STOP_NO_PROGRESS
                break

            if self.all_complete():
                self.logger.info("All subjects reached per-subject target or exhausted.")
                result.stop_reason = self.STOP_ALL_COMPLETE
                break

        result.pages_fetched = self.pages_fetched
        return result

    def _on_page_fetched(self) -> None:
        self.pages_fetched += 1
        if self.pages_fetched % self.checkpoint_pages == 0:
            if self._save_checkpoint():
                self.logger.info(f"Checkpoint saved at pagesFetched = {self.pages_fetched}")

    def _save_checkpoint(self) -> bool:
        if self.checkpoint_manager is None:
            return False
        return self.checkpoint_manager.save(self.session, self.store.records(), self.pages_fetched)
