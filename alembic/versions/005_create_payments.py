"""005: create payments table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payments (
            id                  VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id             VARCHAR(64)     NOT NULL,
            app_id              VARCHAR(64)     NOT NULL REFERENCES apps (id),
            auction_id          VARCHAR(64)     REFERENCES auctions (id),
            amount              NUMERIC(12, 2)  NOT NULL,
            currency            VARCHAR(3)      NOT NULL DEFAULT 'INR',
            gateway_order_id    VARCHAR(64)     NOT NULL,
            gateway_payment_id  VARCHAR(64),
            gateway_signature   VARCHAR(128),
            status              VARCHAR(16)     NOT NULL DEFAULT 'pending',
            payment_method      VARCHAR(32)     NOT NULL DEFAULT 'razorpay',
            description         TEXT,
            metadata            JSONB           NOT NULL DEFAULT '{}'::jsonb,
            refund_amount       NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            refund_reason       TEXT,
            refunded_at         TIMESTAMPTZ,
            completed_at        TIMESTAMPTZ,
            failure_reason      TEXT,
            is_active           BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payments_gateway_order  UNIQUE (gateway_order_id),
            CONSTRAINT ck_payments_amount_gte_0   CHECK (amount >= 0),
            CONSTRAINT ck_payments_refund_bounds  CHECK (refund_amount >= 0 AND refund_amount <= amount),
            CONSTRAINT ck_payments_status CHECK (
                status IN ('pending', 'completed', 'failed', 'refunded')
            )
        );
    """)
    # One completed purchase per (user, app)
    op.execute("""
        CREATE UNIQUE INDEX uq_payments_completed_user_app
            ON payments (user_id, app_id) WHERE status = 'completed';
    """)
    op.execute("CREATE INDEX idx_payments_user_status ON payments (user_id, status);")
    op.execute("CREATE INDEX idx_payments_gateway_payment ON payments (gateway_payment_id);")
    op.execute("CREATE INDEX idx_payments_created ON payments (created_at DESC, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_payments_updated_at
            BEFORE UPDATE ON payments
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payments CASCADE;")
