"""Initial schema — users, expenses, settlements, friends and activity.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only: never edit this file once it has run against a database.
Schema changes go into a new revision.

Creation order:
  1. Enum types (split_method_enum, activity_kind_enum)
  2. Tables in FK dependency order (users → expenses → expense_participants,
     settlements, friendships, activities → activity_targets)
  3. Indexes (including the partial index idx_expenses_active_payer)

ON DELETE policies:
  expenses.*                     → RESTRICT  (cannot delete a user with expenses)
  expense_participants.expense_id→ CASCADE   (participant rows owned by expense)
  expense_participants.user_id   → RESTRICT
  settlements.*                  → RESTRICT
  friendships.*                  → CASCADE   (friend list owned by user)
  activities / activity_targets  → CASCADE
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


split_method_enum = sa.Enum(
    "equal", "unequal", "percent",
    name="split_method_enum",
)

activity_kind_enum = sa.Enum(
    "EXPENSE_CREATED",
    "EXPENSE_UPDATED",
    "EXPENSE_DELETED",
    "EXPENSE_RESTORED",
    "SETTLEMENT_CREATED",
    "FRIEND_ADDED",
    name="activity_kind_enum",
)


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_users_name_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
        sa.CheckConstraint("email = LOWER(email)", name="ck_users_email_lowercase"),
    )

    # ── expenses ──────────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("payer_id", sa.Integer(), nullable=False),
        sa.Column(
            "split_method",
            split_method_enum,
            nullable=False,
            server_default="equal",
        ),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by_id", sa.Integer(), nullable=True),
        sa.Column("deleted_reason", sa.String(200), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.ForeignKeyConstraint(
            ["payer_id"], ["users.id"],
            name="fk_expenses_payer_id", ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["created_by_id"], ["users.id"],
            name="fk_expenses_created_by_id", ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["deleted_by_id"], ["users.id"],
            name="fk_expenses_deleted_by_id", ondelete="RESTRICT",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_expenses_amount_non_negative"),
        sa.CheckConstraint("LENGTH(TRIM(title)) > 0", name="ck_expenses_title_nonempty"),
        sa.CheckConstraint(
            "(deleted_at IS NULL AND deleted_by_id IS NULL) "
            "OR (deleted_at IS NOT NULL AND deleted_by_id IS NOT NULL)",
            name="ck_expenses_deletion_consistent",
        ),
        sa.CheckConstraint(
            "deleted_reason IS NULL OR deleted_at IS NOT NULL",
            name="ck_expenses_reason_requires_deletion",
        ),
    )

    # ── expense_participants ──────────────────────────────────────────────
    op.create_table(
        "expense_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("expense_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("share", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_expense_participants"),
        sa.ForeignKeyConstraint(
            ["expense_id"], ["expenses.id"],
            name="fk_expense_participants_expense_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_expense_participants_user_id", ondelete="RESTRICT",
        ),
        sa.UniqueConstraint(
            "expense_id", "user_id",
            name="uq_expense_participants_expense_user",
        ),
        sa.CheckConstraint("share >= 0", name="ck_expense_participants_share_non_negative"),
    )

    # ── settlements ───────────────────────────────────────────────────────
    op.create_table(
        "settlements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("from_user_id", sa.Integer(), nullable=False),
        sa.Column("to_user_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("note", sa.String(200), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_settlements"),
        sa.ForeignKeyConstraint(
            ["from_user_id"], ["users.id"],
            name="fk_settlements_from_user_id", ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["to_user_id"], ["users.id"],
            name="fk_settlements_to_user_id", ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["created_by_id"], ["users.id"],
            name="fk_settlements_created_by_id", ondelete="RESTRICT",
        ),
        sa.CheckConstraint("amount >= 1", name="ck_settlements_amount_positive"),
        sa.CheckConstraint(
            "from_user_id <> to_user_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    # ── friendships ───────────────────────────────────────────────────────
    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("friend_id", sa.Integer(), nullable=False),
        sa.Column("nickname", sa.String(50), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_friendships"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_friendships_user_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["friend_id"], ["users.id"],
            name="fk_friendships_friend_id", ondelete="CASCADE",
        ),
        sa.UniqueConstraint("user_id", "friend_id", name="uq_friendships_user_friend"),
        sa.CheckConstraint("user_id <> friend_id", name="ck_friendships_no_self"),
    )

    # ── activities ────────────────────────────────────────────────────────
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", activity_kind_enum, nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activities"),
        sa.ForeignKeyConstraint(
            ["actor_id"], ["users.id"],
            name="fk_activities_actor_id", ondelete="CASCADE",
        ),
    )

    op.create_table(
        "activity_targets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_activity_targets"),
        sa.ForeignKeyConstraint(
            ["activity_id"], ["activities.id"],
            name="fk_activity_targets_activity_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_activity_targets_user_id", ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "activity_id", "user_id",
            name="uq_activity_targets_activity_user",
        ),
    )

    # ── Indexes ───────────────────────────────────────────────────────────
    op.create_index("ix_expenses_payer_id", "expenses", ["payer_id"])
    op.create_index(
        "idx_expenses_active_payer",
        "expenses",
        ["payer_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.create_index("ix_expense_participants_expense_id", "expense_participants", ["expense_id"])
    op.create_index("ix_expense_participants_user_id", "expense_participants", ["user_id"])
    op.create_index("ix_settlements_to_user_id", "settlements", ["to_user_id"])
    op.create_index("idx_settlements_pair", "settlements", ["from_user_id", "to_user_id"])
    op.create_index("ix_friendships_user_id", "friendships", ["user_id"])
    op.create_index("ix_activity_targets_activity_id", "activity_targets", ["activity_id"])
    op.create_index("idx_activity_targets_unread", "activity_targets", ["user_id", "read_at"])


def downgrade() -> None:
    op.drop_index("idx_activity_targets_unread", table_name="activity_targets")
    op.drop_index("ix_activity_targets_activity_id", table_name="activity_targets")
    op.drop_index("ix_friendships_user_id", table_name="friendships")
    op.drop_index("idx_settlements_pair", table_name="settlements")
    op.drop_index("ix_settlements_to_user_id", table_name="settlements")
    op.drop_index("ix_expense_participants_user_id", table_name="expense_participants")
    op.drop_index("ix_expense_participants_expense_id", table_name="expense_participants")
    op.drop_index("idx_expenses_active_payer", table_name="expenses")
    op.drop_index("ix_expenses_payer_id", table_name="expenses")

    op.drop_table("activity_targets")
    op.drop_table("activities")
    op.drop_table("friendships")
    op.drop_table("settlements")
    op.drop_table("expense_participants")
    op.drop_table("expenses")
    op.drop_table("users")

    bind = op.get_bind()
    activity_kind_enum.drop(bind, checkfirst=True)
    split_method_enum.drop(bind, checkfirst=True)
