"""
Script to run one reconciliation pass (for cron or an external scheduler)

Usage:
    python scripts/run_reconciliation.py
    python scripts/run_reconciliation.py --intake data/orders.csv
    python scripts/run_reconciliation.py --facts-only
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import build_engine, build_session_maker
from core.exceptions import ETLException
from core.logging import setup_logging
from reconciliation.intake import StagingCSVIntake
from reconciliation.runner import ReconciliationRunner

logger = logging.getLogger(__name__)


async def run_reconciliation(intake_files=(), facts_only: bool = False) -> int:
    """Run the pipeline once; returns a process exit code"""
    engine = build_engine(settings.DATABASE_URL)
    SessionLocal = build_session_maker(engine)
    
    try:
        async with SessionLocal() as session:
            for file_path in intake_files:
                staged = await StagingCSVIntake(session, file_path).ingest()
                logger.info(f"Staged {staged} rows from {file_path}")
            
            runner = ReconciliationRunner(session)
            
            if facts_only:
                merge = await runner.refresh_facts()
                logger.info(f"Fact refresh: inserted={merge.inserted}, updated={merge.updated}")
                return 0
            
            result = await runner.run()
            logger.info(
                f"Run {result.run_id}: validated={result.validation.rows_validated}, "
                f"rejected={result.validation.rows_rejected}, "
                f"exhausted={result.validation.rows_exhausted}, "
                f"loaded={result.load.rows_loaded}, "
                f"facts inserted={result.merge.inserted}, updated={result.merge.updated}"
            )
            return 0
    
    except ETLException as e:
        logger.error(f"Reconciliation failed: {e.message}")
        return 1
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run order reconciliation once")
    parser.add_argument("--intake", action="append", default=[], metavar="CSV",
                        help="Stage rows from a CSV file before the run (repeatable)")
    parser.add_argument("--facts-only", action="store_true",
                        help="Only refresh the derived fact table")
    parser.add_argument("--log-level", default=None,
                        help="Override LOG_LEVEL for this invocation")
    args = parser.parse_args(argv)
    
    setup_logging(args.log_level)
    return asyncio.run(run_reconciliation(args.intake, args.facts_only))


if __name__ == "__main__":
    sys.exit(main())
