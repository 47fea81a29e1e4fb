# storefront/tasks/expire.py
from datetime import timedelta

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.data.types import utcnow
from storefront.repos.cart_repo import CartRepo
from storefront.repos.session_repo import SessionRepo
from storefront.utils.settings import STALE_CART_DAYS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def purge_expired(db) -> dict:
    """Usuwa wygasle sesje, sesje resetu, prosby o weryfikacje i stare koszyki gosci."""
    now = utcnow()
    sessions = SessionRepo(db)
    carts = CartRepo(db)

    result = {
        "sessions": sessions.delete_expired_sessions(now),
        "reset_sessions": sessions.delete_expired_reset_sessions(now),
        "verification_requests": sessions.delete_expired_verification_requests(now),
        "carts": carts.delete_stale_anonymous_carts(now - timedelta(days=STALE_CART_DAYS)),
    }
    db.commit()
    return result


@celery_app.task(name="storefront.tasks.expire.purge_expired_task")
def purge_expired_task():
    logger.info("Purge expired task started")

    db = SessionLocal()
    try:
        result = purge_expired(db)
        logger.info(
            f"Purged {result['sessions']} sessions, {result['reset_sessions']} reset sessions, "
            f"{result['verification_requests']} verification requests, {result['carts']} stale carts"
        )
        return result
    except Exception:
        db.rollback()
        logger.exception("Purge expired task failed")
        raise
    finally:
        db.close()
