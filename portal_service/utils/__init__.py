"""
Backend clients and request dependencies for Trade Portal
"""
