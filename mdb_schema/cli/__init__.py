"""
CLI tool for MDB_SCHEMA.

This module provides the command-line tools for:
- Applying a schema document to a MongoDB deployment
- Saving the live schema of a deployment to a schema document

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

__all__ = []
