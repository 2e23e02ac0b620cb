"""
Exam question harvester package
Resumable, quota-bounded collection of exam questions from a paginated catalog API
"""

from .config_loader import ConfigLoader, ConfigurationError, HarvestConfig, MissingCredentialError
from .retry_policy import RetryPolicy, PermanentAPIError, is_transient_error, linear_backoff
from .http_client import CatalogClient, APIResponse, ProtocolError, normalise_payload
from .discovery_service import DiscoveryService, select_years
from .subject_resolver import SubjectResolver, ResolveResult, subject_variants
from .records import Record, dedup_key, normalise_text
from .dedup_store import DedupStore
from .state_manager import Session, SubjectPointer
from .traversal import TraversalEngine, StepOutcome
from .quota_controller import QuotaController, ControllerResult
from .checkpoint_manager import CheckpointManager, Checkpoint
from .output_writer import OutputWriter
from .harvest_orchestrator import HarvestOrchestrator, HarvestResult, HarvestAbortedError

__version__ = "1.0.0"
__all__ = [
    'ConfigLoader',
    'ConfigurationError',
    'HarvestConfig',
    'MissingCredentialError',
    'RetryPolicy',
    'PermanentAPIError',
    'is_transient_error',
    'linear_backoff',
    'CatalogClient',
    'APIResponse',
    'ProtocolError',
    'normalise_payload',
    'DiscoveryService',
    'select_years',
    'SubjectResolver',
    'ResolveResult',
    'subject_variants',
    'Record',
    'dedup_key',
    'normalise_text',
    'DedupStore',
    'Session',
    'SubjectPointer',
    'TraversalEngine',
    'StepOutcome',
    'QuotaController',
    'ControllerResult',
    'CheckpointManager',
    'Checkpoint',
    'OutputWriter',
    'HarvestOrchestrator',
    'HarvestResult',
    'HarvestAbortedError'
]
