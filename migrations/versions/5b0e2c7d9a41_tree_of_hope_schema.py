"""tree of hope schema

Revision ID: 5b0e2c7d9a41
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5b0e2c7d9a41"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _jsonb(sa_json):
    # Portable: JSON on SQLite, JSONB on Postgres
    return sa_json.with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    # --- campaigns ---
    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("patient_name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("story", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("leaf_count", sa.Integer(), nullable=False),
        sa.Column("supporter_count", sa.Integer(), nullable=False),
        sa.Column("monthly_total_cents", sa.Integer(), nullable=False),
        sa.Column("sanctuary_claimed", sa.Boolean(), nullable=False),
        sa.Column("sanctuary_claimed_by", sa.String(length=64), nullable=True),
        sa.Column("sanctuary_start_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("leaf_count >= 0", name="ck_campaigns_leaf_count_nonneg"),
        sa.CheckConstraint("supporter_count >= 0", name="ck_campaigns_supporter_count_nonneg"),
        sa.CheckConstraint("monthly_total_cents >= 0", name="ck_campaigns_monthly_total_nonneg"),
    )
    with op.batch_alter_table("campaigns") as batch_op:
        batch_op.create_index(batch_op.f("ix_campaigns_slug"), ["slug"], unique=True)
        batch_op.create_index(batch_op.f("ix_campaigns_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_campaigns_sanctuary_claimed_by"), ["sanctuary_claimed_by"], unique=False)
        batch_op.create_index(batch_op.f("ix_campaigns_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_campaigns_status_created", ["status", "created_at"], unique=False)

    # --- leaves ---
    op.create_table(
        "leaves",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.String(length=36), nullable=False),
        sa.Column("author_name", sa.String(length=160), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("position_x", sa.Integer(), nullable=False),
        sa.Column("position_y", sa.Integer(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("is_hidden", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
    )
    with op.batch_alter_table("leaves") as batch_op:
        batch_op.create_index(batch_op.f("ix_leaves_campaign_id"), ["campaign_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_leaves_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_leaves_campaign_visible", ["campaign_id", "is_public", "is_hidden"], unique=False)

    # --- bridge_campaigns ---
    op.create_table(
        "bridge_campaigns",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=True),
        sa.Column("source_url", sa.String(length=500), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("organiser_name", sa.String(length=160), nullable=True),
        sa.Column("raised_cents", sa.Integer(), nullable=False),
        sa.Column("goal_cents", sa.Integer(), nullable=False),
        sa.Column("donor_count", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=80), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("campaign_id", sa.String(length=36), nullable=True),
        sa.Column("claimed_by", sa.String(length=64), nullable=True),
        sa.Column("outreach_attempts", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("outreach_attempts >= 0", name="ck_bridge_outreach_attempts_nonneg"),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="SET NULL"),
    )
    with op.batch_alter_table("bridge_campaigns") as batch_op:
        batch_op.create_index(batch_op.f("ix_bridge_campaigns_slug"), ["slug"], unique=False)
        batch_op.create_index(batch_op.f("ix_bridge_campaigns_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_bridge_campaigns_campaign_id"), ["campaign_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_bridge_campaigns_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_bridge_campaigns_status_created", ["status", "created_at"], unique=False)

    # --- bridge_outreach ---
    op.create_table(
        "bridge_outreach",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("bridge_id", sa.String(length=36), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("message_summary", sa.Text(), nullable=False),
        sa.Column("response_status", sa.String(length=40), nullable=True),
        sa.Column("outreach_date", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["bridge_id"], ["bridge_campaigns.id"], ondelete="CASCADE"),
    )
    with op.batch_alter_table("bridge_outreach") as batch_op:
        batch_op.create_index(batch_op.f("ix_bridge_outreach_bridge_id"), ["bridge_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_bridge_outreach_outreach_date"), ["outreach_date"], unique=False)

    # --- commitments ---
    op.create_table(
        "commitments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("stripe_subscription_id", sa.String(length=120), nullable=True),
        sa.Column("stripe_customer_id", sa.String(length=120), nullable=True),
        sa.Column("monthly_tier", sa.String(length=40), nullable=True),
        sa.Column("joining_gift_tier", sa.String(length=40), nullable=True),
        sa.Column("monthly_amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("paused_at", sa.DateTime(), nullable=True),
        sa.Column("resume_date", sa.Date(), nullable=True),
        sa.Column("pause_reason", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("campaign_id", "stripe_subscription_id", name="uq_commitments_campaign_subscription"),
    )
    with op.batch_alter_table("commitments") as batch_op:
        batch_op.create_index(batch_op.f("ix_commitments_campaign_id"), ["campaign_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_commitments_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_commitments_stripe_subscription_id"), ["stripe_subscription_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_commitments_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_commitments_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_commitments_user_started", ["user_id", "started_at"], unique=False)

    # --- memberships ---
    op.create_table(
        "memberships",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("campaign_id", "user_id", "role", name="uq_memberships_campaign_user_role"),
    )
    with op.batch_alter_table("memberships") as batch_op:
        batch_op.create_index(batch_op.f("ix_memberships_campaign_id"), ["campaign_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_memberships_user_id"), ["user_id"], unique=False)

    # --- analytics_events ---
    op.create_table(
        "analytics_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("event_name", sa.String(length=80), nullable=False),
        sa.Column("campaign_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("session_id", sa.String(length=120), nullable=True),
        sa.Column("properties", _jsonb(sa.JSON()), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    with op.batch_alter_table("analytics_events") as batch_op:
        batch_op.create_index(batch_op.f("ix_analytics_events_campaign_id"), ["campaign_id"], unique=False)
        batch_op.create_index("ix_analytics_events_name_created", ["event_name", "created_at"], unique=False)

    # --- stripe_events ---
    op.create_table(
        "stripe_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("event_id", sa.String(length=120), nullable=False),
        sa.Column("type", sa.String(length=120), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("object_id", sa.String(length=120), nullable=True),
        *_timestamps(),
    )
    with op.batch_alter_table("stripe_events") as batch_op:
        batch_op.create_index(batch_op.f("ix_stripe_events_created_at"), ["created_at"], unique=False)
        batch_op.create_index(batch_op.f("ix_stripe_events_event_id"), ["event_id"], unique=True)
        batch_op.create_index(batch_op.f("ix_stripe_events_object_id"), ["object_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_stripe_events_type"), ["type"], unique=False)
        batch_op.create_index("ix_stripe_events_type_created", ["type", "created_at"], unique=False)


def downgrade():
    # reverse dependency order
    for table in (
        "stripe_events",
        "analytics_events",
        "memberships",
        "commitments",
        "bridge_outreach",
        "bridge_campaigns",
        "leaves",
        "campaigns",
    ):
        op.drop_table(table)
