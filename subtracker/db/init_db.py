import logging

from subtracker.db.session import engine
from subtracker.db.base import Base
import subtracker.db.models  # noqa: F401  (registers every table on Base.metadata)

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create missing tables (used when Alembic migrations are not enabled)."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
