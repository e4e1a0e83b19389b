"""
Compliance Kernel

Shared foundation for the jurisdiction fee engine:
- Structured logging and request-scoped log context
- Typed exception hierarchy
- Immutable domain values (transactions, gate results, fee breakdowns)
- Read-only collaborator interfaces
- SQLAlchemy base, engine and ORM models for fire-and-forget persistence
"""

__version__ = "0.1.0"
