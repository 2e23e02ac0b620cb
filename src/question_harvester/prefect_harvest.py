"""
Prefect orchestration for the exam question harvester
Wraps the HarvestOrchestrator into Prefect tasks and a flow

question-harvester --config configs/myquest.toml --prefect
"""

from pathlib import Path
from typing import Any, Dict, Optional

from prefect import flow, task, get_run_logger
from prefect.cache_policies import NONE

from .config_loader import ConfigLoader, ConfigurationError, HarvestConfig
from .harvest_orchestrator import HarvestAbortedError, HarvestOrchestrator, HarvestResult


@task(
    name="validate_harvest_configuration",
    description="Load the harvest configuration and resolve the bearer credential",
    cache_policy=NONE,  # Inputs carry the credential
    retries=0  # Configuration validation should not retry
)
def validate_harvest_configuration(config_path: str,
                                   overrides: Optional[Dict[str, Any]] = None) -> HarvestConfig:
    """
    Validate configuration file and environment variables

    Args:
        config_path: Path to TOML or YAML configuration file
        overrides: Field overrides taking precedence over the file

    Returns:
        Validated HarvestConfig
    """
    logger = get_run_logger()
    logger.info(f"Validating configuration: {config_path}")

    try:
        config = ConfigLoader.load_config(Path(config_path), overrides)
    except ConfigurationError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    logger.info(f"Configuration valid: api={config.api_name} exam={config.exam}")
    return config


@task(
    name="run_harvest",
    description="Collect questions in rounds until quota, exhaustion or no progress",
    cache_policy=NONE,
    retries=0  # Resumption is handled by checkpoints, not task retries
)
def run_harvest(config: HarvestConfig, fresh: bool = False) -> HarvestResult:
    logger = get_run_logger()
    logger.info(f"Starting harvest for {config.exam}")

    orchestrator = HarvestOrchestrator.from_config(config)
    try:
        return orchestrator.run(fresh=fresh)
    except HarvestAbortedError as e:
        logger.error(str(e))
        raise


@task(name="summarise_harvest", cache_policy=NONE, retries=0)
def summarise_harvest(result: HarvestResult) -> Dict[str, Any]:
    """Per-subject counts plus run statistics"""
    logger = get_run_logger()
    summary = {
        'total_collected': len(result.records),
        'subjects': {subject: len(records) for subject, records in result.by_subject.items()},
        **result.statistics()
    }
    logger.info(f"Harvest complete: {summary['total_collected']} questions "
                f"in {summary['rounds']} rounds ({summary['stop_reason']})")
    return summary


@flow(
    name="exam_question_harvest",
    description="Resumable, quota-bounded exam question harvest"
)
def exam_harvest_flow(config_path: str, overrides: Optional[Dict[str, Any]] = None,
                      fresh: bool = False) -> Dict[str, Any]:
    config = validate_harvest_configuration(config_path, overrides)
    result = run_harvest(config, fresh)
    return summarise_harvest(result)
