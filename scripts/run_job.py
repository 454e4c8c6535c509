#!/usr/bin/env python3
"""
Run one lesson engine job by hand, outside the scheduler's cadence.

Useful after an outage (e.g. to push overdue sessions to completed) or to
check what a reminder sweep would pick up right now.

Usage:
    python scripts/run_job.py class_status_update
    python scripts/run_job.py class_reminders_1h
    python scripts/run_job.py --list
    python scripts/run_job.py --process-trials

Requirements:
    - DATABASE_URL set
    - SMTP_USER/SMTP_PASSWORD or SENDGRID_API_KEY set (otherwise email fails
      and only in-app notifications are created)
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Load environment variables from .env files
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
load_dotenv(project_root / ".env")
load_dotenv(project_root / ".env.local", override=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main(job: str | None, process_trials: bool) -> int:
    from tutoring.database import close_engine
    from tutoring.engine import JOB_INTERVALS, build_engine

    engine = build_engine()
    try:
        if process_trials:
            converted = await engine.converter.process_completed_trials()
            print(f"Converted {converted} trial students")
            return 0

        if job not in JOB_INTERVALS:
            print(f"Unknown job {job!r}. Available: {', '.join(JOB_INTERVALS)}")
            return 1

        result = await engine.scheduler.run_once(job)
        state = engine.scheduler.status()[job]
        if state["last_error"]:
            print(f"{job} failed: {state['last_error']}")
            return 1

        print(f"{job} finished in {state['last_duration']:.2f}s")
        print(json.dumps(result, indent=2, default=str))
        return 0
    finally:
        await close_engine()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a lesson engine job once")
    parser.add_argument("job", nargs="?", help="Job name, e.g. class_status_update")
    parser.add_argument("--list", action="store_true", help="List job names and cadences")
    parser.add_argument(
        "--process-trials",
        action="store_true",
        help="Re-check every completed trial session and convert eligible students",
    )
    args = parser.parse_args()

    if args.list:
        from tutoring.engine import JOB_INTERVALS

        for name, interval in JOB_INTERVALS.items():
            print(f"{name:28} every {interval}")
        sys.exit(0)

    if not args.job and not args.process_trials:
        parser.error("a job name or --process-trials is required")

    sys.exit(asyncio.run(main(args.job, args.process_trials)))
