"""Compliance deadline reminder/escalation runner.

Safe to run from cron: each record notifies at most once per deadline level.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from compliancedb.database import WriteSessionLocal
from compliancedb.apps.compliance import services as compliance_services

logger = logging.getLogger(__name__)


def run() -> dict:
    db = WriteSessionLocal()
    try:
        result = compliance_services.run_deadline_sweep(db, now=datetime.now(timezone.utc))
        if not result.success:
            logger.error("Deadline sweep failed", extra={"error": result.error.model_dump() if result.error else None})
        return result.model_dump()
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    summary = run()
    print("Compliance deadline runner completed:", summary.get("data"))
