import logging
import os

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()


def create_app(config_name=None, start_scheduler=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)

    # Setup logging
    from cfb_pickem.utils.logging_config import setup_logging

    setup_logging(app)

    from cfb_pickem.services.context import build_context

    with app.app_context():
        from cfb_pickem import models  # noqa: F401 - registers tables

        db.create_all()
        app.extensions["cfb_pickem"] = build_context(app)

    # Background jobs run in the worker process only
    if start_scheduler is None:
        start_scheduler = app.config.get("SCHEDULER_ENABLED", True) and not app.testing

    if start_scheduler:
        from cfb_pickem.services.scheduler_service import SchedulerService

        scheduler = SchedulerService(app)
        scheduler.start()
        app.extensions["cfb_pickem_scheduler"] = scheduler

    logger.info(f"CFB Pick'em app created with '{config_name}' configuration")
    return app
