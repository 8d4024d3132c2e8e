"""
Damage Reports Blueprint
"""

from app.api.damage_reports.routes import damage_reports_bp

__all__ = ['damage_reports_bp']
