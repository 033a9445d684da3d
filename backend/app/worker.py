"""Worker process for the scheduled policy grant.

Runs an asyncio loop that grants leave for every active policy once per
interval. A pass is safe to repeat: grants already made are skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from app.config import get_settings
from app.db import get_session_factory
from app.services import repository
from app.services.grant import GrantRunResult, run_grant

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


@dataclass
class GrantPassResult:
    """Summary of one scheduled pass over all active policies."""

    target_date: date
    policies: int = 0
    granted: int = 0
    skipped: int = 0
    errors: int = 0
    runs: list[GrantRunResult] = field(default_factory=list)


async def run_grant_pass(
    session_factory: async_sessionmaker[AsyncSession],
    target_date: date,
) -> GrantPassResult:
    """Run the policy grant for ``target_date`` across every active policy.

    Each policy runs in its own session; a failing policy is logged and
    counted without stopping the others.
    """
    settings = get_settings()
    result = GrantPassResult(target_date=target_date)

    async with session_factory() as session:
        policies = [(p.company_id, p.leave_type_id) for p in await repository.fetch_active_policies(session)]

    for company_id, leave_type_id in policies:
        result.policies += 1
        try:
            async with session_factory() as session:
                run = await run_grant(session, company_id, leave_type_id, target_date, settings.system_actor_id)
        except Exception:
            logger.exception(
                "Grant run failed for company=%s leave_type=%s on %s",
                company_id,
                leave_type_id,
                target_date,
            )
            result.errors += 1
            continue
        result.runs.append(run)
        result.granted += run.granted
        result.skipped += run.skipped

    return result


async def run_grant_loop() -> None:
    """Main worker loop that runs the policy grant once per interval."""
    settings = get_settings()
    session_factory = get_session_factory()
    logger.info("Grant worker started")

    while True:
        today = date.today()
        logger.info("Running policy grants for %s", today)
        try:
            result = await run_grant_pass(session_factory, today)
            logger.info(
                "Grant pass complete for %s: policies=%d granted=%d skipped=%d errors=%d",
                today,
                result.policies,
                result.granted,
                result.skipped,
                result.errors,
            )
        except Exception:
            logger.exception("Grant pass failed for %s", today)

        await asyncio.sleep(settings.grant_worker_interval_seconds)


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_grant_loop())


if __name__ == "__main__":
    main()
