from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _template_columns(default_text: str) -> list[sa.Column]:
    return [
        sa.Column("group_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("text", sa.Text(), nullable=False, server_default=default_text),
        sa.Column("media_type", sa.String(), nullable=False, server_default="none"),
        sa.Column("media_file_id", sa.String(), nullable=True),
        sa.Column("has_caption", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("buttons", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("show_buttons", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("show_tags", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("group_id"),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("telegram_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved_by", sa.BigInteger(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("telegram_id"),
    )
    op.create_index("idx_users_username", "users", ["username"], unique=False)

    op.create_table(
        "groups",
        sa.Column("group_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("added_by", sa.BigInteger(), nullable=True),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved_by", sa.BigInteger(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("welcome_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("goodbye_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("anti_spam", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("anti_link", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("anti_forward", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("restrict_new_members", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_delete_commands", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("admin_only_commands", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("added_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("group_id"),
    )

    op.create_table(
        "group_blacklist",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("group_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("added_by", sa.BigInteger(), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["group_id"], ["groups.group_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_blacklist_user"),
    )

    op.create_table(
        "group_warnings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("group_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("added_by", sa.BigInteger(), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.group_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_warnings_user"),
    )

    op.create_table(
        "group_admins",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("group_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("added_by", sa.BigInteger(), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["group_id"], ["groups.group_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_admins_user"),
    )

    op.create_table("welcome_templates", *_template_columns("Welcome to the group!"))
    op.create_table("goodbye_templates", *_template_columns("Goodbye!"))


def downgrade() -> None:
    op.drop_table("goodbye_templates")
    op.drop_table("welcome_templates")
    op.drop_table("group_admins")
    op.drop_table("group_warnings")
    op.drop_table("group_blacklist")
    op.drop_table("groups")
    op.drop_index("idx_users_username", table_name="users")
    op.drop_table("users")
