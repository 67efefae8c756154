from __future__ import annotations

import json
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from app.config import SETTINGS
from app.domain.errors import InvalidTask
from app.infra.db import init_db
from app.infra.logging import setup_logging
from app.infra.repository import TaskRepository
from app.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging()
    try:
        init_db()
    except SQLAlchemyError as exc:
        logger.error("Database connection error: %s", exc)
        sys.exit(1)

    days = sys.argv[1] if len(sys.argv) > 1 else SETTINGS.analytics_default_days
    try:
        report = AnalyticsService(TaskRepository()).get_analytics(days)
    except InvalidTask as exc:
        logger.error("Invalid analytics request: %s", exc)
        sys.exit(2)
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
