"""
Business logic services for Trade Portal
"""
