"""Dependency graph model and chart mappers."""
