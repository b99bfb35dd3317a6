"""
Stale session cleanup job.

Removes device sessions whose lastActive is older than the retention window
(7 days by default) from every user. The API runs it once at startup and
then every SESSION_CLEANUP_INTERVAL_HOURS; it can also be run on its own.

Usage:
    Run via CRON:
        0 3 * * * cd /path/to/project && python -m jobs.session_cleanup

    Or run directly:
        python -m jobs.session_cleanup
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from common.database import MongoDB
from smartfinance.config import settings
from smartfinance.services.auth.session_manager import SessionManager

logger = logging.getLogger(__name__)


class SessionCleanupJob:
    """
    Sweeps stale sessions across all users.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        interval: timedelta = timedelta(hours=24),
    ):
        """
        Initialize the cleanup job.

        Args:
            session_manager: Performs the sweep
            interval: Time between sweeps in run_forever
        """
        self._session_manager = session_manager
        self._interval = interval

    async def run(self) -> Dict[str, Any]:
        """
        Execute one sweep.

        Returns:
            Dict with job results (users affected and any error)
        """
        logger.info("Starting session cleanup job")
        start_time = datetime.now(timezone.utc)

        results = {
            "startTime": start_time.isoformat(),
            "usersAffected": 0,
            "errors": [],
        }

        try:
            results["usersAffected"] = await self._session_manager.sweep_stale()
        except Exception as e:
            error_msg = f"Job failed: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        results["endTime"] = datetime.now(timezone.utc).isoformat()
        results["durationSeconds"] = (
            datetime.now(timezone.utc) - start_time
        ).total_seconds()

        logger.info(
            f"Session cleanup job completed. "
            f"Users affected: {results['usersAffected']}, "
            f"Errors: {len(results['errors'])}"
        )

        return results

    async def run_forever(self) -> None:
        """Sweep now, then once per interval until cancelled."""
        while True:
            await self.run()
            await asyncio.sleep(self._interval.total_seconds())


async def main():
    """Main entry point for the session cleanup job."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    db = MongoDB()
    await db.connect(settings.MONGODB_URI, settings.MONGODB_DATABASE)

    try:
        job = SessionCleanupJob(
            SessionManager(
                db.db,
                retention=timedelta(days=settings.SESSION_RETENTION_DAYS),
            ),
        )
        results = await job.run()

        print("\n=== Session Cleanup Job Results ===")
        print(f"Start Time: {results['startTime']}")
        print(f"End Time: {results['endTime']}")
        print(f"Duration: {results['durationSeconds']:.2f} seconds")
        print(f"Users Affected: {results['usersAffected']}")

        if results["errors"]:
            print(f"\nErrors ({len(results['errors'])}):")
            for error in results["errors"]:
                print(f"  - {error}")

        exit_code = 1 if results["errors"] else 0
        sys.exit(exit_code)

    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
