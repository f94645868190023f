"""Shared domain-agnostic primitives for docstore services."""
