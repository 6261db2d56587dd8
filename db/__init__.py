"""
db/ - Database Layer
====================
Handles PostgreSQL provisioning, the shared connection pool, schema migrations
and seeding. This layer is the lowest in the architecture.
"""
