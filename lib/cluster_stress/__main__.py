"""Entry point for running the backup / store-copy interaction stress harness.

Usage:
    python -m cluster_stress [--cores N] [--edges M] [--duration MINUTES]
                             [--working-directory DIR] [--log-level LEVEL]

Environment variables (flags take precedence):
    BACKUP_STORE_COPY_INTERACTION_STRESS_NUMBER_OF_CORES (default: 3)
    BACKUP_STORE_COPY_INTERACTION_STRESS_NUMBER_OF_EDGES (default: 1)
    BACKUP_STORE_COPY_INTERACTION_STRESS_DURATION in minutes (default: 30)
    BACKUP_STORE_COPY_INTERACTION_STRESS_WORKING_DIRECTORY (default: system temp dir)
    BACKUP_STORE_COPY_INTERACTION_STRESS_BASE_CORE_BACKUP_PORT (default: 8000)
    BACKUP_STORE_COPY_INTERACTION_STRESS_BASE_EDGE_BACKUP_PORT (default: 9000)
    BACKUP_STORE_COPY_INTERACTION_STRESS_SETTINGS_FILE YAML core setting overrides
    STRESS_LOG_LEVEL (default: INFO)

Exit codes: 0 pass, 1 a worker failed, 2 setup error.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from .config import StressConfig
from .constants import EnvVars
from .errors import SetupError
from .harness import BackupStoreCopyInteractionHarness

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cluster_stress",
        description="Stress a core/edge cluster with churn, online backups and writes"
    )
    parser.add_argument("--cores", type=int, help="Number of core members")
    parser.add_argument("--edges", type=int, help="Number of edge members")
    parser.add_argument("--duration", type=float, help="Run duration in minutes")
    parser.add_argument("--working-directory", help="Root for cluster/ and backups/")
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS,
        default=os.environ.get(EnvVars.LOG_LEVEL, "INFO")
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.log_level not in LOG_LEVELS:
        # defaults taken from the environment bypass argparse choices
        print(f"Setup failed: unknown log level {args.log_level!r}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
    )

    try:
        config = StressConfig.from_env(
            number_of_cores=args.cores,
            number_of_edges=args.edges,
            duration_seconds=args.duration * 60 if args.duration is not None else None,
            working_directory=args.working_directory,
        )
        result = BackupStoreCopyInteractionHarness(config).execute()
    except SetupError as e:
        print(f"Setup failed: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1

    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(main())
