"""Initialize webhook ingestion and response-time tables

Revision ID: initialize_database
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "initialize_database"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("source_event_type", sa.String(128), nullable=True),
        sa.Column(
            "raw_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False
        ),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_code", sa.String(64), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source_ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_webhook_events_processed_created",
        "webhook_events",
        ["processed", "created_at"],
    )
    op.create_index("ix_webhook_events_event_type", "webhook_events", ["event_type"])

    op.create_table(
        "contacts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("profile_pic_url", sa.String(1024), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("tags", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("last_interaction_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index("ix_contacts_phone", "contacts", ["phone"])

    op.create_table(
        "channels",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("channel_type", sa.String(64), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )

    op.create_table(
        "sectors",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=True),
        sa.Column("order_position", sa.Integer(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )

    op.create_table(
        "organization_members",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )

    op.create_table(
        "conversations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("contact_id", sa.UUID(), nullable=False),
        sa.Column("channel", sa.String(32), nullable=False, server_default="whatsapp"),
        sa.Column("status", sa.String(16), nullable=False, server_default="open"),
        sa.Column("assigned_agent_id", sa.String(255), nullable=True),
        sa.Column("channel_id", sa.UUID(), nullable=True),
        sa.Column("sector_id", sa.UUID(), nullable=True),
        sa.Column("organization_member_id", sa.UUID(), nullable=True),
        sa.Column("priority", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"]),
        sa.ForeignKeyConstraint(["channel_id"], ["channels.id"]),
        sa.ForeignKeyConstraint(["sector_id"], ["sectors.id"]),
        sa.ForeignKeyConstraint(
            ["organization_member_id"], ["organization_members.id"]
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index(
        "ix_conversations_contact_status_created",
        "conversations",
        ["contact_id", "status", "created_at"],
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("conversation_id", sa.UUID(), nullable=False),
        sa.Column("contact_id", sa.UUID(), nullable=False),
        sa.Column("direction", sa.String(16), nullable=False),
        sa.Column("sender", sa.String(16), nullable=True),
        sa.Column("message_type", sa.String(32), nullable=False, server_default="text"),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("media_url", sa.String(1024), nullable=True),
        sa.Column("media_filename", sa.String(255), nullable=True),
        sa.Column("media_mime_type", sa.String(128), nullable=True),
        sa.Column("media_size", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="sent"),
        sa.Column("event_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "raw_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"]),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index(
        "ix_messages_conversation_direction_timestamp",
        "messages",
        ["conversation_id", "direction", "event_timestamp"],
    )

    op.create_table(
        "pending_responses",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("conversation_key", sa.String(512), nullable=False),
        sa.Column("conversation_external_id", sa.String(255), nullable=False),
        sa.Column("contact_phone", sa.String(32), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("customer_message_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_message_external_id", sa.String(255), nullable=True),
        sa.Column("customer_message_content", sa.Text(), nullable=True),
        sa.Column("is_pending", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("agent_response_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("agent_message_external_id", sa.String(255), nullable=True),
        sa.Column("response_time_ms", sa.BigInteger(), nullable=True),
        sa.Column("response_time_minutes", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_pending_responses_one_pending_per_key",
        "pending_responses",
        ["conversation_key"],
        unique=True,
        postgresql_where=sa.text("is_pending"),
    )
    op.create_index(
        "ix_pending_responses_key_customer_time",
        "pending_responses",
        ["conversation_key", "customer_message_time"],
    )
    op.create_index("ix_pending_responses_phone", "pending_responses", ["contact_phone"])

    op.create_table(
        "customer_response_times",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("conversation_key", sa.String(512), nullable=False),
        sa.Column("conversation_external_id", sa.String(255), nullable=False),
        sa.Column("contact_phone", sa.String(32), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("customer_message_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_message_external_id", sa.String(255), nullable=True),
        sa.Column("agent_message_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("agent_message_external_id", sa.String(255), nullable=True),
        sa.Column("response_time_ms", sa.BigInteger(), nullable=True),
        sa.Column("response_time_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "is_first_message", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_message_external_id"),
    )
    op.create_index(
        "ix_customer_response_times_phone_created",
        "customer_response_times",
        ["contact_phone", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_customer_response_times_phone_created",
        table_name="customer_response_times",
    )
    op.drop_table("customer_response_times")
    op.drop_index("ix_pending_responses_phone", table_name="pending_responses")
    op.drop_index(
        "ix_pending_responses_key_customer_time", table_name="pending_responses"
    )
    op.drop_index(
        "uq_pending_responses_one_pending_per_key", table_name="pending_responses"
    )
    op.drop_table("pending_responses")
    op.drop_index(
        "ix_messages_conversation_direction_timestamp", table_name="messages"
    )
    op.drop_table("messages")
    op.drop_index(
        "ix_conversations_contact_status_created", table_name="conversations"
    )
    op.drop_table("conversations")
    op.drop_table("organization_members")
    op.drop_table("sectors")
    op.drop_table("channels")
    op.drop_index("ix_contacts_phone", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("ix_webhook_events_event_type", table_name="webhook_events")
    op.drop_index("ix_webhook_events_processed_created", table_name="webhook_events")
    op.drop_table("webhook_events")
