"""007: app ratings, app_reviews and wishlists

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        ALTER TABLE apps
            ADD COLUMN rating_average NUMERIC(3, 2) NOT NULL DEFAULT 0,
            ADD COLUMN rating_count   INT           NOT NULL DEFAULT 0,
            ADD CONSTRAINT ck_apps_rating_average CHECK (rating_average BETWEEN 0 AND 5);
    """)

    # One review per (app, user); resubmitting overwrites it.
    op.execute("""
        CREATE TABLE app_reviews (
            app_id          VARCHAR(64)     NOT NULL REFERENCES apps (id) ON DELETE CASCADE,
            user_id         VARCHAR(64)     NOT NULL,
            rating          SMALLINT        NOT NULL,
            comment         VARCHAR(500)    NOT NULL DEFAULT '',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (app_id, user_id),
            CONSTRAINT ck_app_reviews_rating CHECK (rating BETWEEN 1 AND 5)
        );
    """)
    op.execute("CREATE INDEX idx_app_reviews_app_updated ON app_reviews (app_id, updated_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_app_reviews_updated_at
            BEFORE UPDATE ON app_reviews
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)

    op.execute("""
        CREATE TABLE wishlists (
            user_id         VARCHAR(64)     NOT NULL,
            app_id          VARCHAR(64)     NOT NULL REFERENCES apps (id) ON DELETE CASCADE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, app_id)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wishlists CASCADE;")
    op.execute("DROP TABLE IF EXISTS app_reviews CASCADE;")
    op.execute("""
        ALTER TABLE apps
            DROP CONSTRAINT IF EXISTS ck_apps_rating_average,
            DROP COLUMN IF EXISTS rating_count,
            DROP COLUMN IF EXISTS rating_average;
    """)
