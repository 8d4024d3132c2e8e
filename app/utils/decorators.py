"""
Route decorators for role checks

Use below @jwt_required():

    @bp.route('/dashboard')
    @jwt_required()
    @admin_required()
    def dashboard(): ...
"""

from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt_identity

from app.models.user import User


def get_current_user():
    identity = get_jwt_identity()
    if identity is None:
        return None
    return User.query.get(int(identity))


def admin_required():
    """Decorator to check if user is admin"""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = get_current_user()
            if not user or not user.is_admin:
                return jsonify({'error': 'Admin access required'}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def host_required():
    """Decorator to check the user can host"""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = get_current_user()
            if not user or not (user.is_host or user.is_admin):
                return jsonify({'error': 'Host access required'}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
