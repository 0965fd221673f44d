"""Persistence layer."""

from .entity_store import EntityStore, normalize_shop_domain

__all__ = ["EntityStore", "normalize_shop_domain"]
