"""FastAPI dependency helpers."""
from .database import get_db
from .auth import get_admin_user, get_current_user, oauth2_scheme
from .ledger import get_payout_ledger

__all__ = ["get_db", "get_admin_user", "get_current_user", "get_payout_ledger", "oauth2_scheme"]
