import logging

from ayahfind.db.session import engine
from ayahfind.db.base import Base
import ayahfind.db.models  # noqa: F401  registers models on Base.metadata

logger = logging.getLogger(__name__)


def init_db(bind=None):
    """Create any missing tables."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")
