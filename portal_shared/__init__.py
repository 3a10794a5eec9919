"""
Shared package for Trade Portal

Schemas and utilities used by the portal service.
"""

__version__ = "1.0.0"
