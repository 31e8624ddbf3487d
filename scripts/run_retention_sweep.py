"""
Run the admissions retention sweep once.

For cron-driven deployments that do not run the in-process scheduler.

Usage:
    python scripts/run_retention_sweep.py
"""

import asyncio
import json
import logging

from progress_api.core.config import settings
from progress_api.core.database import engine
from progress_api.modules.admissions.jobs import purge_redeemed_records, run_retention_sweep


async def main() -> int:
    sweep = await run_retention_sweep()
    purge = await purge_redeemed_records()
    await engine.dispose()

    print(json.dumps({"retention_sweep": sweep, "purge_redeemed": purge}, indent=2))
    return 1 if sweep["status"] != "success" or purge["total_errors"] else 0


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    raise SystemExit(asyncio.run(main()))
