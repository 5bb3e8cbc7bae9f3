"""HostLedger: host subscriptions, bookings, wallets and payouts for a rental marketplace."""

__version__ = "1.0.0"

__all__ = ["__version__"]
