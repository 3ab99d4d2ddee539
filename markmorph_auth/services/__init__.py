"""Integrations with the cache, database, identity provider, and mail."""
