"""
Purge unpaid cards older than two days.

Meant to be run by an external scheduler (cron, a platform job runner):

    python -m app.jobs.expiry_sweep
"""
import logging

from app.controllers.card_controller import sweep_expired_unpaid_cards
from app.core.database import SessionLocal
from app.core.storage import get_blob_store

logger = logging.getLogger(__name__)


def run_sweep() -> int:
    db = SessionLocal()
    try:
        removed = sweep_expired_unpaid_cards(db, get_blob_store())
    finally:
        db.close()
    logger.info("Expiry sweep finished, %d cards removed", removed)
    return removed


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_sweep()
