"""
Verification (KYC) Blueprint
"""

from app.api.verification.routes import verification_bp

__all__ = ['verification_bp']
