"""
API routes for Trade Portal
"""

from . import auth, onboarding, portal, waitlist

__all__ = ["auth", "onboarding", "portal", "waitlist"]
