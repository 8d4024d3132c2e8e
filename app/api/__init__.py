"""
API Package
"""

# Import all blueprints for easy access
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

__all__ = [
    'auth_bp',
    'users_bp',
    'listings_bp',
    'bookings_bp',
    'reviews_bp',
    'payments_bp',
    'damage_reports_bp',
    'notifications_bp',
    'messaging_bp',
    'verification_bp',
    'admin_bp',
]
