"""
Database Module

Declarative base, ORM models and engine/session management for AssessFlow.
"""

from assessflow.database.base import Base, ModelBase, metadata

__all__ = ['Base', 'ModelBase', 'metadata']
