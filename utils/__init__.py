"""
utils/ - Shared helpers
=======================
Cross-cutting helpers such as logging setup.
"""
