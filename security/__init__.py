"""
security/ - Credential handling
===============================
Password hashing and verification.
"""
