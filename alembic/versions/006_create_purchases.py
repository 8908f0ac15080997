"""006: create purchases table

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE purchases (
            user_id         VARCHAR(64)     NOT NULL,
            app_id          VARCHAR(64)     NOT NULL REFERENCES apps (id),
            payment_id      VARCHAR(64)     REFERENCES payments (id),
            price           NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            purchased_at    TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, app_id)
        );
    """)
    op.execute("COMMENT ON TABLE purchases IS 'App ownership; rebuilt from completed payments on read';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS purchases CASCADE;")
