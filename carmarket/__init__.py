"""
Car Market core package.

Domain services (sessions, ledger, cars, event feed) over a JSON-backed
record store. The HTTP layer lives in ``carmarket_web``.
"""

__version__ = "1.0.0"
