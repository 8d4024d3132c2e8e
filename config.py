import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)
    JWT_TOKEN_LOCATION = ['headers']
    JWT_HEADER_NAME = 'Authorization'
    JWT_HEADER_TYPE = 'Bearer'

    # File Upload Configuration
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max file size
    UPLOAD_FOLDER = 'uploads'
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'pdf'}

    AWS_ACCESS_KEY_ID = os.getenv('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.getenv('AWS_SECRET_ACCESS_KEY')
    S3_BUCKET_NAME = os.getenv('S3_BUCKET_NAME')
    AWS_REGION = os.getenv('AWS_REGION', 'us-east-1')

    # Payments: 'simulated' writes SIM_ references, 'stripe' goes through Stripe
    PAYMENT_PROVIDER = os.getenv('PAYMENT_PROVIDER', 'simulated')
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_PUBLISHABLE_KEY = os.getenv('STRIPE_PUBLISHABLE_KEY')
    STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
    CURRENCY = os.getenv('CURRENCY', 'NGN')

    # Realtime chat
    PUSHER_APP_ID = os.getenv('PUSHER_APP_ID')
    PUSHER_KEY = os.getenv('PUSHER_KEY')
    PUSHER_SECRET = os.getenv('PUSHER_SECRET')
    PUSHER_CLUSTER = os.getenv('PUSHER_CLUSTER', 'eu')

    # Email Configuration
    MAIL_SERVER = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('MAIL_PORT', 587))
    MAIL_USE_TLS = os.getenv('MAIL_USE_TLS', 'True') == 'True'
    MAIL_USE_SSL = os.getenv('MAIL_USE_SSL', 'False') == 'True'
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.getenv('MAIL_DEFAULT_SENDER', 'no-reply@localhost')
    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 280,
    }

    CORS_ORIGINS = [
        os.getenv('FRONTEND_URL', 'http://localhost:3000'),
        'http://localhost:5173',
    ]

    # Accounts registered with these emails get admin rights
    ADMIN_EMAILS = [e.strip().lower() for e in os.getenv('ADMIN_EMAILS', '').split(',') if e.strip()]

    # Booking
    SERVICE_FEE_PERCENTAGE = 0.10       # charged to the guest
    HOST_SERVICE_FEE_PERCENTAGE = 0.05  # deducted from the host payout
    MAX_BOOKING_DAYS_AHEAD = 365
    MIN_PRICE = 0.01
    MAX_PRICE = 100000000
    MAX_GUESTS_MULTIPLIER = 2
    PRICE_TOLERANCE = 0.01
    IDEMPOTENCY_KEY_EXPIRY_HOURS = 24
    DEFAULT_CHECK_OUT_TIME = '11:00'
    DEFAULT_ACCESS_END_TIME = '23:00'

    # Escrow hold after the booking ends, per pricing model
    ESCROW_RELEASE_HOURS = {
        'HOURLY': 24,
        'DAILY': 24,
        'NIGHTLY': 48,
        'DEFAULT': 48,
    }

    # Host response window before a pending booking is auto-cancelled
    AUTO_CANCEL_HOURS = {
        'STANDARD': 24,
        'SAME_DAY': 4,
    }
    PAYOUT_NOTICE_HOURS = 24
    SCHEDULER_INTERVAL_SECONDS = int(os.getenv('SCHEDULER_INTERVAL_SECONDS', 60))
    # Run the sweeps in-process; production can use 'flask scheduler run' instead
    SCHEDULER_ENABLED = os.getenv('SCHEDULER_ENABLED', 'False') == 'True'

    # Messaging
    MAX_MESSAGE_LENGTH = 2000


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'sqlite:///marketplace.db')
    SQLALCHEMY_ECHO = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI')
    SQLALCHEMY_ECHO = False

    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SQLALCHEMY_ECHO = False
    RATELIMIT_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    PAYMENT_PROVIDER = 'simulated'
    ADMIN_EMAILS = ['admin@example.com']
    SCHEDULER_ENABLED = False
    PUSHER_APP_ID = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
