"""
Command line entry point for the exam question harvester

question-harvester --config configs/myquest.toml --exam JAMB --per-subject-target 1000
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config_loader import ConfigLoader, ConfigurationError, HarvestConfig
from .harvest_orchestrator import HarvestAbortedError, HarvestOrchestrator

logger = logging.getLogger("question_harvester")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="question-harvester",
        description="Harvest a deduplicated, quota-bounded exam question corpus"
    )
    parser.add_argument('--config', required=True, type=Path, help="TOML or YAML configuration file")
    parser.add_argument('--exam', help="Exam identifier, e.g. JAMB")
    parser.add_argument('--per-subject-target', type=int, help="Unique questions to collect per subject")
    parser.add_argument('--target', type=int, help="Global target divided evenly across subjects")
    parser.add_argument('--years-back', type=int, help="Only traverse the newest N years")
    parser.add_argument('--output-dir', type=Path, help="Directory for output files")
    parser.add_argument('--checkpoint', type=Path, help="Checkpoint file location")
    parser.add_argument('--fresh', action='store_true', help="Ignore any existing checkpoint")
    parser.add_argument('--log-level', help="Logging level (default from config, INFO)")
    parser.add_argument('--prefect', action='store_true', help="Run as a Prefect flow")
    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto HarvestConfig fields; unset flags are None"""
    return {
        'exam': args.exam,
        'per_subject_target': args.per_subject_target,
        'target': args.target,
        'years_back': args.years_back,
        'output_dir': args.output_dir,
        'checkpoint_path': args.checkpoint,
        'log_level': args.log_level,
    }


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the harvester

    Returns:
        Process exit code: 0 on success, 1 on fatal configuration or abort errors
    """
    args = build_parser().parse_args(argv)
    overrides = overrides_from_args(args)

    try:
        config: HarvestConfig = ConfigLoader.load_config(args.config, overrides)
    except (ConfigurationError, FileNotFoundError) as e:
        configure_logging(args.log_level or "INFO")
        logger.error(f"Configuration error: {e}")
        return 1

    configure_logging(config.log_level, config.log_file)
    logger.info(f"Starting collection for {config.exam}, per-subject target "
                f"{config.per_subject_target or 'not set'}, target {config.target or 'not set'}")

    try:
        if args.prefect:
            from .prefect_harvest import exam_harvest_flow
            exam_harvest_flow(str(args.config), overrides, fresh=args.fresh)
        else:
            HarvestOrchestrator.from_config(config).run(fresh=args.fresh)
    except (ConfigurationError, HarvestAbortedError) as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted; progress is kept in the last checkpoint")
        return 130

    return 0


if __name__ == '__main__':
    sys.exit(main())
