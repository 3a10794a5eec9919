"""
Trade Portal service

Sign-up, role onboarding and the role-aware portal, backed by Supabase.
"""

__version__ = "1.0.0"
