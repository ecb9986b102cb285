"""
Recovery Kernel

Shared infrastructure for the reverse-logistics recovery engine:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- SQLAlchemy ORM base, engine/session management, and persistent models
- Read-only selectors for reporting queries
- Injectable clock
"""

__version__ = "0.1.0"
