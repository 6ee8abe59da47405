"""
create deployment, deployment log and error log tables

Revision ID: c1a0d0000001
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c1a0d0000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def upgrade() -> None:
    op.create_table(
        'deployments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('chain_name', sa.String(30), nullable=False),
        sa.Column('host', sa.String(45), nullable=False),
        sa.Column('ssh_user', sa.String(64), nullable=False),
        sa.Column('ssh_port', sa.Integer(), nullable=False, server_default='22'),
        sa.Column('contact_email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='QUEUED'),
        sa.Column('rpc_endpoint', sa.String(255), nullable=True),
        sa.Column('api_endpoint', sa.String(255), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    )
    op.create_index('ix_deployments_chain_name', 'deployments', ['chain_name'])
    op.create_index('ix_deployments_status', 'deployments', ['status'])
    op.create_index('ix_deployments_created_at', 'deployments', ['created_at'])

    op.create_table(
        'deployment_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('deployment_id', sa.String(36), sa.ForeignKey('deployments.id'), nullable=False),
        sa.Column('step', sa.String(32), nullable=False),
        sa.Column('command', sa.Text(), nullable=True),
        sa.Column('output', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    )
    op.create_index('ix_deployment_logs_deployment_id', 'deployment_logs', ['deployment_id'])

    op.create_table(
        'error_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(64), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('dev_message', sa.Text(), nullable=True),
        sa.Column('url', sa.String(255), nullable=True),
        sa.Column('stack', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    )

def downgrade() -> None:
    op.drop_table('error_log')
    op.drop_index('ix_deployment_logs_deployment_id', table_name='deployment_logs')
    op.drop_table('deployment_logs')
    op.drop_index('ix_deployments_created_at', table_name='deployments')
    op.drop_index('ix_deployments_status', table_name='deployments')
    op.drop_index('ix_deployments_chain_name', table_name='deployments')
    op.drop_table('deployments')
