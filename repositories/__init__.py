"""
repositories/ - Data Access Layer
==================================
Each repository encapsulates all SQL queries for a specific domain entity.
Repositories take the shared Database handle, read dict rows and return domain models.
"""
