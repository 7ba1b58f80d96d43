"""Initial lead lifecycle schema: leads, classification_entries, configurations, analytics_events

Revision ID: 3f1a9c6e2d84
Revises:
Create Date: 2026-03-02 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c6e2d84'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('leads',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('lead_name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('company', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('phase', sa.Text(), nullable=False),
        sa.Column('received_at', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('sent_by', sa.Text(), nullable=True),
        sa.Column('ai_authoritative', sa.Boolean(), nullable=False),
        sa.Column('configuration_id', sa.Text(), nullable=True),
        sa.Column('bot_research', sa.JSON(), nullable=True),
        sa.Column('draft', sa.JSON(), nullable=True),
        sa.Column('edit_note', sa.Text(), nullable=True),
        sa.Column('matched_case_studies', sa.JSON(), nullable=True),
        sa.Column('support_feedback', sa.JSON(), nullable=True),
        sa.Column('reroute', sa.JSON(), nullable=True),
        sa.Column('sent_email', sa.JSON(), nullable=True),
        sa.Column('meeting_booked_at', sa.DateTime(), nullable=True),
        sa.Column('delivery_claimed_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_phase', 'leads', ['phase'])

    op.create_table('classification_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('author', sa.Text(), nullable=False),
        sa.Column('classification', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('needs_review', sa.Boolean(), nullable=True),
        sa.Column('applied_threshold', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('lead_id', 'seq', name='uq_classification_entries_lead_seq'),
    )
    op.create_index('ix_classification_entries_lead_id', 'classification_entries', ['lead_id'])

    op.create_table('configurations',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('thresholds', sa.JSON(), nullable=False),
        sa.Column('email_templates', sa.JSON(), nullable=False),
        sa.Column('sdr', sa.JSON(), nullable=False),
        sa.Column('support_team', sa.JSON(), nullable=False),
        sa.Column('account_team', sa.JSON(), nullable=False),
        sa.Column('email_settings', sa.JSON(), nullable=False),
        sa.Column('response_to_lead', sa.JSON(), nullable=False),
        sa.Column('rollout_percentage', sa.Float(), nullable=False),
        sa.Column('prompts', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('activated_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    # At most one active configuration
    op.create_index(
        'uq_configurations_single_active', 'configurations', ['status'], unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table('analytics_events',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=True),
        sa.Column('configuration_id', sa.Text(), nullable=True),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_analytics_events_lead_id', 'analytics_events', ['lead_id'])
    op.create_index('ix_analytics_events_configuration_id', 'analytics_events', ['configuration_id'])
    op.create_index('ix_analytics_events_event_type', 'analytics_events', ['event_type'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_analytics_events_event_type', table_name='analytics_events')
    op.drop_index('ix_analytics_events_configuration_id', table_name='analytics_events')
    op.drop_index('ix_analytics_events_lead_id', table_name='analytics_events')
    op.drop_table('analytics_events')
    op.drop_index('uq_configurations_single_active', table_name='configurations')
    op.drop_table('configurations')
    op.drop_index('ix_classification_entries_lead_id', table_name='classification_entries')
    op.drop_table('classification_entries')
    op.drop_index('ix_leads_phase', table_name='leads')
    op.drop_table('leads')
