"""Create users, courses, purchases and enrollments.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('resume', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_user_email', 'users', ['email'])

    op.create_table(
        'courses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('thumbnail', sa.Text(), nullable=True),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('discount', sa.Integer(), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=True),
        sa.Column('educator_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_course_educator_id', 'courses', ['educator_id'])

    op.create_table(
        'purchases',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('course_id', sa.String(36), sa.ForeignKey('courses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_purchase_user_id', 'purchases', ['user_id'])
    op.create_index('idx_purchase_course_id', 'purchases', ['course_id'])
    op.create_index('idx_purchase_status', 'purchases', ['status'])

    op.create_table(
        'enrollments',
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('course_id', sa.String(36), sa.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('enrolled_at', sa.DateTime(), nullable=True),
    )


def downgrade():
    op.drop_table('enrollments')
    op.drop_index('idx_purchase_status', table_name='purchases')
    op.drop_index('idx_purchase_course_id', table_name='purchases')
    op.drop_index('idx_purchase_user_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('idx_course_educator_id', table_name='courses')
    op.drop_table('courses')
    op.drop_index('idx_user_email', table_name='users')
    op.drop_table('users')
