"""Dialect resolution, statement caching and CRUD execution."""
