import logging
from logging.handlers import RotatingFileHandler
import os

import httpx
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_caching import Cache

from config import Config


db = SQLAlchemy(session_options={"autoflush": False})
cache = Cache()
httpx_client = httpx.Client(http2=True)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get('SENTRY_DSN'):
        import sentry_sdk
        sentry_sdk.init(
            dsn=app.config["SENTRY_DSN"],
            enable_tracing=False,
        )

    db.init_app(app)
    cache.init_app(app)

    # log rotation
    if not app.testing:
        log_dir = app.config.get('LOG_DIR', 'logs')
        if not os.path.exists(log_dir):
            os.mkdir(log_dir)
        file_handler = RotatingFileHandler(os.path.join(log_dir, 'fedmrf.log'),
                                           maxBytes=1002400, backupCount=15)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Started!')

    # registers the policies with the chain's registry
    from fedmrf.federation import mrf  # noqa: F401

    return app


from fedmrf import models  # noqa: E402,F401
