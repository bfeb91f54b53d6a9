"""create enrollment ledger

Revision ID: e1a2b3c4d5f6
Revises:
Create Date: 2026-03-02 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e1a2b3c4d5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'sections',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('label', sa.String(length=120), nullable=False),
        sa.Column('max_capacity', sa.Integer(), nullable=False),
        sa.Column('enrolled_count', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('max_capacity >= 0', name='ck_section_capacity_nonneg'),
        sa.CheckConstraint('enrolled_count >= 0', name='ck_section_enrolled_nonneg'),
        sa.CheckConstraint('enrolled_count <= max_capacity', name='ck_section_not_overcommitted'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('label')
    )

    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('section_id', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('plan', sa.String(length=10), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('external_session_id', sa.String(length=255), nullable=False),
        sa.Column('external_customer_id', sa.String(length=255), nullable=True),
        sa.Column('waitlist_position', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('promoted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['section_id'], ['sections.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('enrollments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_enrollments_section_id'), ['section_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_enrollments_external_session_id'), ['external_session_id'], unique=True)
        batch_op.create_index(
            'uq_enrollment_waitlist_position',
            ['section_id', 'waitlist_position'],
            unique=True,
            postgresql_where=sa.text("payment_status = 'WAITLISTED'"),
            sqlite_where=sa.text("payment_status = 'WAITLISTED'"),
        )

    op.create_table(
        'course_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=120), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('course_settings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_course_settings_key'), ['key'], unique=True)

    op.create_table(
        'admin_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('admin_sessions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_admin_sessions_token_hash'), ['token_hash'], unique=True)

    op.create_table(
        'ip_rate_limits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('window_start', sa.DateTime(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('ip_rate_limits', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ip_rate_limits_key'), ['key'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor', sa.String(length=40), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=False),
        sa.Column('entity', sa.String(length=80), nullable=True),
        sa.Column('entity_id', sa.String(length=80), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_logs_action'), ['action'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_logs_entity_id'), ['entity_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_logs_timestamp'), ['timestamp'], unique=False)


def downgrade():
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_audit_logs_timestamp'))
        batch_op.drop_index(batch_op.f('ix_audit_logs_entity_id'))
        batch_op.drop_index(batch_op.f('ix_audit_logs_action'))
    op.drop_table('audit_logs')

    with op.batch_alter_table('ip_rate_limits', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_ip_rate_limits_key'))
    op.drop_table('ip_rate_limits')

    with op.batch_alter_table('admin_sessions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_admin_sessions_token_hash'))
    op.drop_table('admin_sessions')

    with op.batch_alter_table('course_settings', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_course_settings_key'))
    op.drop_table('course_settings')

    with op.batch_alter_table('enrollments', schema=None) as batch_op:
        batch_op.drop_index('uq_enrollment_waitlist_position')
        batch_op.drop_index(batch_op.f('ix_enrollments_external_session_id'))
        batch_op.drop_index(batch_op.f('ix_enrollments_section_id'))
    op.drop_table('enrollments')

    op.drop_table('sections')
