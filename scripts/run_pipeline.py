"""
Pipeline Script
===============

Command-line script that runs the whole churn model comparison.

Usage:
    python scripts/run_pipeline.py --data data/raw/Churn_Modelling.csv --mode corrected
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loguru import logger

from config import get_config
from src.pipeline import ChurnPipeline
from src.utils import setup_logging


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Compare churn prediction models")

    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="CSV path, or name of a file in data/raw/ (default from config)"
    )
    parser.add_argument(
        "--mode",
        type=str,
        default=None,
        choices=list(ChurnPipeline.MODES),
        help="faithful reproduces the notebook; corrected avoids test-set leakage"
    )
    parser.add_argument(
        "--no-mlflow",
        action="store_true",
        help="Disable MLflow tracking"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )

    return parser.parse_args()


def main():
    """Main pipeline function."""
    args = parse_args()
    config = get_config()

    log_config = config.get("logging", {})
    setup_logging(
        level=args.log_level or log_config.get("level", "INFO"),
        log_file=log_config.get("log_file")
    )

    if args.no_mlflow:
        config.setdefault("mlflow", {})["enabled"] = False

    try:
        results = ChurnPipeline(config, mode=args.mode).run(args.data)
    except IOError as e:
        logger.error(f"Cannot read input data: {e}")
        sys.exit(1)

    logger.info(f"\n{results['comparison'].to_string(index=False)}")
    logger.info(f"Report: {results['report_path']}")


if __name__ == "__main__":
    main()
