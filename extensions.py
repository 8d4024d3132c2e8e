"""
Flask extensions initialization
Extensions are initialized here to avoid circular imports
"""

import logging

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mail import Mail
from pusher import Pusher


logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
bcrypt = Bcrypt()
cors = CORS()
mail = Mail()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri="memory://"
)

# Set by init_pusher; None means chat clients poll instead of subscribing
pusher_client = None


def init_pusher(app):
    global pusher_client

    if not app.config.get('PUSHER_APP_ID'):
        pusher_client = None
        logger.warning('Pusher credentials not found. Realtime chat fan-out is disabled.')
        return None

    pusher_client = Pusher(
        app_id=app.config['PUSHER_APP_ID'],
        key=app.config['PUSHER_KEY'],
        secret=app.config['PUSHER_SECRET'],
        cluster=app.config['PUSHER_CLUSTER'],
        ssl=True
    )
    return pusher_client
