"""Side-effect retry runner.

Replays audit entries and notifications that failed after their primary
change committed. Intended for cron; use
`python -m compliancedb.apps.compliance.dispatcher` for a polling loop.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from compliancedb.database import WriteSessionLocal
from compliancedb.apps.compliance import dispatcher

logger = logging.getLogger(__name__)


def run() -> dict:
    db = WriteSessionLocal()
    try:
        attempted = dispatcher.dispatch_due_side_effects(db, now=datetime.now(timezone.utc))
        return {"attempted": attempted}
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Side-effect runner completed:", run())
