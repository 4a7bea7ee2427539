"""Initial disk inventory schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _unit_columns():
    # Shared by units and return_records
    return [
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("product_type", sa.String(length=64), nullable=False),
        sa.Column("type_capacity", sa.String(length=32), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=True),
        sa.Column("source", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("add_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("buyer_name", sa.String(length=255), nullable=True),
        sa.Column("buyer_phone", sa.String(length=64), nullable=True),
        sa.Column("buyer_email", sa.String(length=255), nullable=True),
        sa.Column("buyer_address", sa.Text(), nullable=True),
        sa.Column("buyer_payment_method", sa.String(length=64), nullable=True),
        sa.Column("sold_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("warranty_registered", sa.Boolean(), nullable=False),
    ]


def _warranty_columns():
    # Shared by warranties and return_warranties
    return [
        sa.Column("registration_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("registered_by", sa.String(length=255), nullable=False),
        sa.Column("registration_source", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("last_modified_by", sa.String(length=255), nullable=True),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bill_file_id", sa.Integer(), sa.ForeignKey("bill_files.id"), nullable=True),
    ]


def _unit_indexes(table):
    for col in ("product_type", "platform", "source", "sold_date", "warranty_registered"):
        op.create_index(f"ix_{table}_{col}", table, [col])


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_user_id", "session_tokens", ["user_id"])
    op.create_index("ix_session_tokens_token_hash", "session_tokens", ["token_hash"], unique=True)
    op.create_index("ix_session_tokens_expires_at", "session_tokens", ["expires_at"])
    op.create_index("ix_session_tokens_is_revoked", "session_tokens", ["is_revoked"])
    op.create_index("ix_session_tokens_user_active", "session_tokens", ["user_id", "is_revoked"])

    op.create_table(
        "bill_files",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("mimetype", sa.String(length=128), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("path", sa.String(length=1024), nullable=False),
        sa.Column("file_type", sa.String(length=32), nullable=False),
        sa.Column("uploaded_by", sa.String(length=255), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_bill_files_unit_id", "bill_files", ["unit_id"])
    op.create_index("ix_bill_files_unit_type", "bill_files", ["unit_id", "file_type"])
    op.create_index("ix_bill_files_uploaded_at", "bill_files", ["uploaded_at"])

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("serial_number", sa.String(length=128), nullable=False),
        *_unit_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("serial_number", name="uq_units_serial_number"),
        sqlite_autoincrement=True,
    )
    _unit_indexes("units")
    op.create_index("ix_units_serial_platform", "units", ["serial_number", "platform"])
    op.create_index("ix_units_created_at", "units", ["created_at"])

    op.create_table(
        "warranties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=False),
        *_warranty_columns(),
        sa.UniqueConstraint("unit_id", name="uq_warranties_unit_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_warranties_status", "warranties", ["status"])
    op.create_index("ix_warranties_registration_date", "warranties", ["registration_date"])

    op.create_table(
        "return_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("serial_number", sa.String(length=128), nullable=False),
        *_unit_columns(),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_reason", sa.Text(), nullable=False),
        sa.Column("return_notes", sa.Text(), nullable=True),
        sa.Column("returned_by", sa.String(length=255), nullable=False),
        sa.Column("original_product_id", sa.Integer(), nullable=False),
        sa.Column("original_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("original_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("original_product_id", name="uq_return_records_original_product"),
        sqlite_autoincrement=True,
    )
    _unit_indexes("return_records")
    op.create_index("ix_return_records_serial_number", "return_records", ["serial_number"])
    op.create_index("ix_return_records_return_date", "return_records", ["return_date"])
    op.create_index("ix_return_records_returned_by", "return_records", ["returned_by"])

    op.create_table(
        "return_warranties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "return_record_id",
            sa.Integer(),
            sa.ForeignKey("return_records.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_warranty_columns(),
        sa.UniqueConstraint("return_record_id", name="uq_return_warranties_record"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_return_warranties_status", "return_warranties", ["status"])

    op.create_table(
        "inquiries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("product_serial_number", sa.String(length=128), nullable=True),
        sa.Column("query_type", sa.String(length=32), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("is_resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(length=255), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inquiries_product_serial_number", "inquiries", ["product_serial_number"])
    op.create_index("ix_inquiries_is_resolved", "inquiries", ["is_resolved"])
    op.create_index("ix_inquiries_created_at", "inquiries", ["created_at"])

    op.create_table(
        "rate_limit_hits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bucket", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_rate_limit_hits_occurred_at", "rate_limit_hits", ["occurred_at"])
    op.create_index("ix_rate_limit_hits_bucket_key_at", "rate_limit_hits", ["bucket", "key", "occurred_at"])


def downgrade():
    for table in (
        "rate_limit_hits",
        "inquiries",
        "return_warranties",
        "return_records",
        "warranties",
        "units",
        "bill_files",
        "session_tokens",
        "users",
    ):
        op.drop_table(table)
