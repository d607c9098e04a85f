"""
Database package initialization.

The package is split into:
- base: declarative base and mixins
- connection: async engine and session management
- models: ORM models for orders, tracking events and dispatch resources
"""

__all__ = []
