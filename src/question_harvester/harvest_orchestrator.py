"""
HarvestOrchestrator module for high-level harvest coordination
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .checkpoint_manager import Checkpoint, CheckpointManager
from .config_loader import ConfigLoader, HarvestConfig
from .dedup_store import DedupStore
from .discovery_service import DiscoveryService, select_years
from .http_client import CatalogClient
from .output_writer import OutputWriter
from .quota_controller import ControllerResult, QuotaController
from .records import Record
from .state_manager import Session
from .subject_resolver import SubjectResolver


class HarvestAbortedError(Exception):
    """Raised when the harvest cannot start (exam unavailable, no subjects)"""
    pass


@dataclass
class HarvestResult:
    """Final corpus handed to output writers"""
    records: List[Record]
    by_subject: Dict[str, List[Record]]
    quota: int = 0
    controller_result: ControllerResult = field(default_factory=ControllerResult)
    resumed: bool = False

    def statistics(self) -> Dict[str, Any]:
        return {
            'quota_per_subject': self.quota,
            'rounds': self.controller_result.rounds,
            'inserted_this_run': self.controller_result.inserted,
            'pages_fetched': self.controller_result.pages_fetched,
            'stop_reason': self.controller_result.stop_reason,
            'resumed': self.resumed,
        }


class HarvestOrchestrator:
    """
    High-level coordinator for the harvest workflow

    Orchestrates the complete process of:
    1. Verifying the exam against the catalog
    2. Resuming from a checkpoint or discovering years and subjects
    3. Running the quota controller
    4. Writing outputs and the final checkpoint
    """

    def __init__(
        self,
        config: HarvestConfig,
        client: CatalogClient,
        checkpoint_manager: Optional[CheckpointManager] = None,
        output_writer: Optional[OutputWriter] = None
    ):
        """
        Initialise HarvestOrchestrator with dependency injection

        Args:
            config: Immutable run configuration
            client: Catalog HTTP client
            checkpoint_manager: Snapshot persistence (defaults to config's checkpoint path)
            output_writer: Final output persistence; None skips writing files
        """
        self.config = config
        self.client = client
        self.discovery = DiscoveryService(client)
        self.checkpoint_manager = checkpoint_manager or CheckpointManager(config.resolved_checkpoint_path)
        self.output_writer = output_writer
        self.store = DedupStore()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: HarvestConfig, write_outputs: bool = True) -> 'HarvestOrchestrator':
        output_writer = OutputWriter(config.output_dir, config.exam) if write_outputs else None
        return cls(config, CatalogClient.from_config(config), output_writer=output_writer)

    def verify_exam(self) -> None:
        """
        Abort unless the configured exam is offered by the catalog

        Raises:
            HarvestAbortedError: If the exam is not listed
        """
        exams = self.discovery.list_exams()
        self.logger.info(f"Available exams from API: {', '.join(exams)}")
        if self.config.exam not in exams:
            raise HarvestAbortedError(f"Exam \"{self.config.exam}\" is not available from the API. Aborting.")

    def discover_session(self) -> Session:
        """Build a fresh session from discovery, with static fallbacks"""
        exam = self.config.exam
        years = select_years(self.discovery.list_years(exam), self.config.years_back)
        if not years:
            years = list(self.config.fallback_years)
            self.logger.warning(f"No years discovered for {exam}, using fallback range {years[0]}..{years[-1]}")
        else:
            self.logger.info(f"Discovered years: {', '.join(years)}")

        subjects = set()
        for year in years:
            subjects.update(self.discovery.list_subjects(exam, year))
            self._polite_pause()

        if subjects:
            subject_list = sorted(subjects)
            self.logger.info(f"Discovered subjects (sample): {', '.join(subject_list[:20])}")
        else:
            subject_list = list(self.config.fallback_subjects)
            self.logger.warning("No subjects discovered, using fallback subjects list")

        return Session(exam=exam, years=years, subjects=subject_list)

    def restore(self, checkpoint: Checkpoint) -> Session:
        """Resume a checkpointed session and pre-populate the dedup store"""
        loaded = self.store.preload(checkpoint.records)
        self.logger.info(f"Loaded {loaded} items from checkpoint")

        session = checkpoint.session
        session.exam = session.exam or self.config.exam
        added = session.ensure_pointers()
        if added:
            self.logger.info(f"Initialised pointers for {len(added)} new subjects")
        self.logger.info(f"Resuming from checkpoint, subjects: {len(session.subjects)} years: {len(session.years)}")
        return session

    def run(self, fresh: bool = False) -> HarvestResult:
        """
        Run the complete harvest workflow

        Args:
            fresh: Ignore any existing checkpoint

        Returns:
            HarvestResult with the deduplicated records and per-subject groupings

        Raises:
            HarvestAbortedError: If the exam is unavailable or no subjects exist
            ConfigurationError: If no quota is configured
        """
        try:
            checkpoint = None if fresh else self.checkpoint_manager.load(exam=self.config.exam)

            if checkpoint is not None and checkpoint.session.done:
                self.store.preload(checkpoint.records)
                self.logger.info(f"Checkpoint {self.checkpoint_manager.checkpoint_path} is already complete "
                                 f"({len(self.store)} items); nothing to fetch")
                return self._finish(checkpoint.session, quota=0, controller_result=ControllerResult(
                    pages_fetched=checkpoint.pages_fetched, stop_reason='already_done'), resumed=True,
                    final_save=False)

            if self.config.verify_exam:
                self.verify_exam()

            resumed = checkpoint is not None and bool(checkpoint.session.subjects)
            if resumed:
                session = self.restore(checkpoint)
                pages_fetched = checkpoint.pages_fetched
            else:
                if checkpoint is not None:
                    self.store.preload(checkpoint.records)
                session = self.discover_session()
                pages_fetched = checkpoint.pages_fetched if checkpoint else 0
                self.checkpoint_manager.save(session, self.store.records(), pages_fetched)
                self.logger.info("Initial checkpoint saved")

            if not session.subjects:
                raise HarvestAbortedError("No subjects available after discovery, aborting.")

            quota = ConfigLoader.resolve_quota(self.config.per_subject_target, self.config.target,
                                               len(session.subjects))
            self.logger.info(f"Subjects count: {len(session.subjects)}, per-subject target: {quota}")

            controller = QuotaController(
                session=session,
                resolver=SubjectResolver(self.client, self.config.variant_delay_seconds),
                store=self.store,
                quota=quota,
                checkpoint_manager=self.checkpoint_manager,
                checkpoint_pages=self.config.checkpoint_pages,
                polite_delay_seconds=self.config.polite_delay_seconds,
                pages_fetched=pages_fetched,
                stale_page_limit=self.config.stale_page_limit
            )
            controller_result = controller.run()
            return self._finish(session, quota, controller_result, resumed)

        finally:
            self.client.close_connection()

    def _finish(self, session: Session, quota: int, controller_result: ControllerResult,
                resumed: bool, final_save: bool = True) -> HarvestResult:
        records = self.store.records()
        result = HarvestResult(
            records=records,
            by_subject=self.store.by_subject(session.subjects),
            quota=quota,
            controller_result=controller_result,
            resumed=resumed
        )

        if self.output_writer is not None:
            self.output_writer.write(result.records, result.by_subject, result.statistics())
        if final_save:
            self.checkpoint_manager.mark_done(session, records, controller_result.pages_fetched)

        self.logger.info(f"Finished at {datetime.now(timezone.utc).isoformat()}. "
                         f"Collected {len(records)} unique questions for {session.exam or self.config.exam}")
        return result

    def _polite_pause(self) -> None:
        time.sleep(self.config.polite_delay_seconds)
