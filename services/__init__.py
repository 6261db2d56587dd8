"""
services/ - Business Logic Layer
================================
Entry points called by the transport layer. Services orchestrate repositories
and return result objects instead of raising for expected failures.
"""
