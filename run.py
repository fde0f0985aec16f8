#!/usr/bin/env python3
"""
CFB Pick'em scheduler worker

Creates the application, which starts the background scheduler, and keeps the
process alive until interrupted.
"""

import logging
import time

from cfb_pickem import create_app

logger = logging.getLogger(__name__)


def main():
    app = create_app()

    scheduler = app.extensions.get("cfb_pickem_scheduler")
    if scheduler is None:
        logger.warning("Scheduler is disabled (SCHEDULER_ENABLED=false), nothing to run")
        return

    logger.info("Worker running, press Ctrl+C to stop")
    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()


if __name__ == "__main__":
    main()
