"""contacts, segments and segment_members tables for rule-based segmentation.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("record_kind", sa.String(20), nullable=False, server_default="METADATA"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("source", sa.String(100), nullable=True),
        sa.Column("lifecycle_stage", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("lead_score", sa.Integer, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("cashback_info", sa.JSON, nullable=True),
        sa.Column("custom_fields", sa.JSON, nullable=True),
        sa.Column("opt_in_email", sa.Boolean, nullable=True),
        sa.Column("opt_in_sms", sa.Boolean, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_contacts_id", "contacts", ["id"])
    op.create_index("ix_contacts_email", "contacts", ["email"], unique=True)
    op.create_index("ix_contacts_record_kind_id", "contacts", ["record_kind", "id"])

    op.create_table(
        "segments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "segment_type",
            sa.Enum("static", "dynamic", name="segment_type_enum"),
            nullable=False,
            server_default="dynamic",
        ),
        sa.Column("rules", sa.JSON, nullable=True),
        sa.Column("contact_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_evaluated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "segment_members",
        sa.Column(
            "segment_id",
            sa.String(36),
            sa.ForeignKey("segments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), primary_key=True),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("segment_members")
    op.drop_table("segments")
    sa.Enum(name="segment_type_enum").drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_contacts_record_kind_id", table_name="contacts")
    op.drop_index("ix_contacts_email", table_name="contacts")
    op.drop_index("ix_contacts_id", table_name="contacts")
    op.drop_table("contacts")
