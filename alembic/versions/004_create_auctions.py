"""004: create auctions and auction_bids tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE auctions (
            id                      VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            buyer_id                VARCHAR(64)     NOT NULL,
            title                   VARCHAR(100)    NOT NULL,
            description             TEXT            NOT NULL,
            platform                VARCHAR(20)     NOT NULL,
            category                VARCHAR(20)     NOT NULL,
            budget_min              NUMERIC(12, 2)  NOT NULL,
            budget_max              NUMERIC(12, 2)  NOT NULL,
            deadline                TIMESTAMPTZ     NOT NULL,
            requirements            TEXT[]          NOT NULL DEFAULT '{}',
            features                TEXT[]          NOT NULL DEFAULT '{}',
            tags                    TEXT[]          NOT NULL DEFAULT '{}',
            status                  VARCHAR(16)     NOT NULL DEFAULT 'open',
            accepted_developer_id   VARCHAR(64),
            is_active               BOOLEAN         NOT NULL DEFAULT TRUE,
            views                   INT             NOT NULL DEFAULT 0,
            expires_at              TIMESTAMPTZ     NOT NULL,
            version                 INT             NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_auctions_budget CHECK (budget_min >= 0 AND budget_min <= budget_max),
            CONSTRAINT ck_auctions_status CHECK (
                status IN ('open', 'in-progress', 'completed', 'cancelled')
            ),
            CONSTRAINT ck_auctions_platform CHECK (
                platform IN ('iOS', 'Android', 'Web', 'Cross-Platform', 'Desktop', 'Other')
            ),
            CONSTRAINT ck_auctions_category CHECK (
                category IN ('Productivity', 'Entertainment', 'Social', 'Business', 'Education',
                             'Health', 'Finance', 'Gaming', 'Utility', 'Other')
            ),
            CONSTRAINT ck_auctions_accepted_dev CHECK (
                status = 'open' OR status = 'cancelled' OR accepted_developer_id IS NOT NULL
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_auctions_active_created
            ON auctions (created_at DESC, id DESC) WHERE is_active = TRUE;
    """)
    op.execute("CREATE INDEX idx_auctions_buyer ON auctions (buyer_id);")
    op.execute("""
        CREATE TRIGGER trg_auctions_updated_at
            BEFORE UPDATE ON auctions
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)

    op.execute("""
        CREATE TABLE auction_bids (
            id              VARCHAR(64)     PRIMARY KEY,
            auction_id      VARCHAR(64)     NOT NULL REFERENCES auctions (id) ON DELETE CASCADE,
            developer_id    VARCHAR(64)     NOT NULL,
            amount          NUMERIC(12, 2)  NOT NULL,
            proposal        TEXT            NOT NULL,
            timeline_days   INT             NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'pending',
            submitted_at    TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_auction_bids_developer UNIQUE (auction_id, developer_id),
            CONSTRAINT ck_auction_bids_amount    CHECK (amount >= 0),
            CONSTRAINT ck_auction_bids_timeline  CHECK (timeline_days BETWEEN 1 AND 365),
            CONSTRAINT ck_auction_bids_status    CHECK (status IN ('pending', 'accepted', 'rejected'))
        );
    """)
    # At most one accepted bid per auction
    op.execute("""
        CREATE UNIQUE INDEX uq_auction_bids_one_accepted
            ON auction_bids (auction_id) WHERE status = 'accepted';
    """)
    op.execute("CREATE INDEX idx_auction_bids_developer ON auction_bids (developer_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS auction_bids CASCADE;")
    op.execute("DROP TABLE IF EXISTS auctions CASCADE;")
