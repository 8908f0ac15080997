"""003: create apps table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE apps (
            id                  VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            developer_id        VARCHAR(64)     NOT NULL,
            title               VARCHAR(100)    NOT NULL,
            short_description   VARCHAR(200)    NOT NULL,
            description         TEXT            NOT NULL,
            category            VARCHAR(32)     NOT NULL,
            price               NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            status              VARCHAR(16)     NOT NULL DEFAULT 'pending',
            downloads           INT             NOT NULL DEFAULT 0,
            is_featured         BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_apps_price_gte_0     CHECK (price >= 0),
            CONSTRAINT ck_apps_downloads_gte_0 CHECK (downloads >= 0),
            CONSTRAINT ck_apps_status CHECK (
                status IN ('draft', 'pending', 'approved', 'rejected')
            )
        );
    """)
    op.execute("CREATE INDEX idx_apps_status_created ON apps (status, created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_apps_developer ON apps (developer_id);")
    op.execute("""
        CREATE TRIGGER trg_apps_updated_at
            BEFORE UPDATE ON apps
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS apps CASCADE;")
