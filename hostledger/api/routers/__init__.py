"""Expose API routers."""
from . import admin, auth, bookings, listings, subscriptions, wallet

__all__ = ["admin", "auth", "bookings", "listings", "subscriptions", "wallet"]
