"""
Flask Application Factory
"""

import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import config
from extensions import db, migrate, jwt, bcrypt, cors, limiter, mail, init_pusher
from app.utils.errors import ServiceError


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    bcrypt.init_app(app)
    cors.init_app(app, resources={
        r"/api/*": {
            "origins": app.config['CORS_ORIGINS'],
            "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "Idempotency-Key"]
        }
    })
    limiter.init_app(app)
    mail.init_app(app)
    init_pusher(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    from app.cli import register_commands
    register_commands(app)

    # Create database tables
    with app.app_context():
        db.create_all()

    if app.config.get('SCHEDULER_ENABLED'):
        from app.services.scheduler_service import start_auto_release_scheduler
        start_auto_release_scheduler(app)

    return app


def register_blueprints(app):
    """Register Flask blueprints"""
    from app.api.auth import auth_bp
    from app.api.users import users_bp
    from app.api.listings import listings_bp
    from app.api.bookings import bookings_bp
    from app.api.reviews import reviews_bp
    from app.api.payments import payments_bp
    from app.api.damage_reports import damage_reports_bp
    from app.api.notifications import notifications_bp
    from app.api.messaging import messaging_bp
    from app.api.verification import verification_bp
    from app.api.admin import admin_bp

    # API v1
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(listings_bp, url_prefix='/api/listings')
    app.register_blueprint(bookings_bp, url_prefix='/api/bookings')
    app.register_blueprint(reviews_bp, url_prefix='/api/reviews')
    app.register_blueprint(payments_bp, url_prefix='/api/payments')
    app.register_blueprint(damage_reports_bp, url_prefix='/api/damage-reports')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(messaging_bp, url_prefix='/api/messaging')
    app.register_blueprint(verification_bp, url_prefix='/api/verification')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return jsonify({'status': 'healthy', 'message': 'API is running'}), 200

    @app.route('/')
    def index():
        return jsonify({
            'message': 'Welcome to the Space Rental API',
            'version': '1.0.0',
            'endpoints': {
                'auth': '/api/auth',
                'users': '/api/users',
                'listings': '/api/listings',
                'bookings': '/api/bookings',
                'reviews': '/api/reviews',
                'payments': '/api/payments',
                'damage_reports': '/api/damage-reports',
                'notifications': '/api/notifications',
                'messaging': '/api/messaging',
                'verification': '/api/verification',
                'admin': '/api/admin'
            }
        }), 200


def register_error_handlers(app):
    """Register error handlers"""

    @app.errorhandler(ServiceError)
    def service_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'error': 'Bad Request', 'message': str(error)}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({'error': 'Unauthorized', 'message': 'Authentication required'}), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'error': 'Forbidden', 'message': 'Insufficient permissions'}), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not Found', 'message': 'Resource not found'}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.name, 'message': error.description}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal Server Error', 'message': 'An unexpected error occurred'}), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        db.session.rollback()
        app.logger.error(f'Unhandled exception: {str(error)}')
        return jsonify({'error': 'Internal Server Error', 'message': 'An unexpected error occurred'}), 500
