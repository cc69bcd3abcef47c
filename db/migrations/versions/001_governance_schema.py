"""governance_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Tables for governed resources and their audit trail:
- knowledge_items / knowledge_versions
- system_prompts / prompt_versions (at most one default prompt)
- approval_requests: review queue opened on submit
- audit_logs: append-only, UPDATE/DELETE blocked by trigger
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

RESOURCE_STATUSES = ('draft', 'pending_review', 'approved', 'published', 'active', 'archived')


def _resource_columns():
    """Lifecycle columns shared by knowledge_items and system_prompts."""
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('metadata', postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('status', postgresql.ENUM(
            *RESOURCE_STATUSES, name='resource_status', create_type=False
        ), nullable=False, server_default='draft'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('author_id', sa.String(255), nullable=False),
        sa.Column('reviewer_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()')),
    ]


def _version_table(name: str, parent_table: str, fk_column: str) -> None:
    op.create_table(
        name,
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column(fk_column, postgresql.UUID(as_uuid=True),
                  sa.ForeignKey(f'{parent_table}.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.Integer, nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('author_id', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()')),
        sa.UniqueConstraint(fk_column, 'version', name=f'uq_{name}_{fk_column.split("_")[0]}_version'),
    )


def upgrade() -> None:
    # Enum types
    op.execute(f"""
        CREATE TYPE resource_status AS ENUM ({', '.join(repr(s) for s in RESOURCE_STATUSES)});
        CREATE TYPE actor_kind AS ENUM ('user', 'admin', 'system', 'ai');
        CREATE TYPE approval_action AS ENUM ('publish', 'activate', 'archive');
        CREATE TYPE approval_status AS ENUM ('pending', 'approved', 'rejected', 'canceled');
    """)

    # Knowledge items
    op.create_table(
        'knowledge_items',
        *_resource_columns(),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_knowledge_items_status', 'knowledge_items', ['status'])
    op.create_index('idx_knowledge_items_category', 'knowledge_items', ['category'])
    op.create_index('idx_knowledge_items_author', 'knowledge_items', ['author_id'])
    op.create_index('idx_knowledge_items_created', 'knowledge_items', ['created_at'])
    _version_table('knowledge_versions', 'knowledge_items', 'item_id')

    # System prompts
    op.create_table(
        'system_prompts',
        *_resource_columns(),
        sa.Column('is_default', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_system_prompts_status', 'system_prompts', ['status'])
    op.create_index('idx_system_prompts_created', 'system_prompts', ['created_at'])
    # At most one default prompt
    op.create_index(
        'uq_system_prompts_single_default', 'system_prompts', ['is_default'],
        unique=True, postgresql_where=sa.text('is_default')
    )
    _version_table('prompt_versions', 'system_prompts', 'prompt_id')

    # Approval requests
    op.create_table(
        'approval_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', sa.String(255), nullable=False),
        sa.Column('action', postgresql.ENUM(
            'publish', 'activate', 'archive', name='approval_action', create_type=False
        ), nullable=False),
        sa.Column('status', postgresql.ENUM(
            'pending', 'approved', 'rejected', 'canceled', name='approval_status', create_type=False
        ), nullable=False, server_default='pending'),
        sa.Column('requester_id', sa.String(255), nullable=False),
        sa.Column('request_notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()')),
        sa.Column('reviewer_id', sa.String(255), nullable=True),
        sa.Column('review_notes', sa.Text, nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_approval_requests_status', 'approval_requests', ['status', 'created_at'])
    op.create_index('idx_approval_requests_resource', 'approval_requests', ['resource_type', 'resource_id'])

    # Audit logs
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('actor_id', sa.String(255), nullable=True),
        sa.Column('actor_type', postgresql.ENUM(
            'user', 'admin', 'system', 'ai', name='actor_kind', create_type=False
        ), nullable=False),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', sa.String(255), nullable=True),
        sa.Column('details', postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('request_id', sa.String(64), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()')),
    )
    op.create_index('idx_audit_logs_resource', 'audit_logs', ['resource_type', 'resource_id', 'id'])
    op.create_index('idx_audit_logs_actor', 'audit_logs', ['actor_id', 'id'])
    op.create_index('idx_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('idx_audit_logs_timestamp', 'audit_logs', ['timestamp'])

    # Append-only enforcement
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_modification()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Table % is immutable. UPDATE and DELETE operations are not allowed.',
                TG_TABLE_NAME
                USING HINT = 'This table is part of the audit trail and cannot be modified.';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER audit_logs_immutable
            BEFORE UPDATE OR DELETE ON audit_logs
            FOR EACH ROW
            EXECUTE FUNCTION prevent_modification();
    """)
    op.execute("""
        COMMENT ON TABLE audit_logs IS
        'Append-only audit trail. UPDATE/DELETE blocked by trigger.';
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_logs_immutable ON audit_logs;")
    op.execute("DROP FUNCTION IF EXISTS prevent_modification();")

    op.drop_table('audit_logs')
    op.drop_table('approval_requests')
    op.drop_table('prompt_versions')
    op.drop_table('system_prompts')
    op.drop_table('knowledge_versions')
    op.drop_table('knowledge_items')

    op.execute("""
        DROP TYPE IF EXISTS approval_status;
        DROP TYPE IF EXISTS approval_action;
        DROP TYPE IF EXISTS actor_kind;
        DROP TYPE IF EXISTS resource_status;
    """)
