"""
Shared infrastructure: settings-aware logging, database sessions,
exception taxonomy and HTTP middleware.
"""
