"""
Typed records for the profile store and navigation targets
"""
