"""
db/migrations/ - Versioned schema changes
=========================================
One module per migration, named ``<YYYYMMDDHHMMSS>_<description>.py``.
"""
