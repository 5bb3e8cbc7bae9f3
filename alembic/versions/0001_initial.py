"""Initial HostLedger schema: users, hosts, listings, bookings, payouts and wallets"""
from __future__ import annotations

from alembic import op

import hostledger.core.models  # noqa: F401
from hostledger.core.database import Base

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)


def downgrade() -> None:
    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind)
