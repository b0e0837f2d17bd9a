"""Create businesses and scrape_runs tables

Revision ID: 3e9b1c7a5d20
Revises:
Create Date: 2026-03-02 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e9b1c7a5d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('businesses',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('phone_unformatted', sa.Text(), nullable=True),
        sa.Column('emails', sa.JSON(), nullable=True),
        sa.Column('phones', sa.JSON(), nullable=True),
        sa.Column('website', sa.Text(), nullable=True),
        sa.Column('maps_url', sa.Text(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('review_count', sa.Integer(), nullable=True),
        sa.Column('price', sa.Text(), nullable=True),
        sa.Column('category_name', sa.Text(), nullable=True),
        sa.Column('categories', sa.JSON(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('neighborhood', sa.Text(), nullable=True),
        sa.Column('street', sa.Text(), nullable=True),
        sa.Column('city', sa.Text(), nullable=True),
        sa.Column('postal_code', sa.Text(), nullable=True),
        sa.Column('state', sa.Text(), nullable=True),
        sa.Column('country_code', sa.Text(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('permanently_closed', sa.Boolean(), nullable=True),
        sa.Column('temporarily_closed', sa.Boolean(), nullable=True),
        sa.Column('place_id', sa.Text(), nullable=True),
        sa.Column('cid', sa.Text(), nullable=True),
        sa.Column('images_count', sa.Integer(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('hotel_stars', sa.Text(), nullable=True),
        sa.Column('domain', sa.Text(), nullable=True),
        sa.Column('instagram', sa.Text(), nullable=True),
        sa.Column('facebook', sa.Text(), nullable=True),
        sa.Column('twitter', sa.Text(), nullable=True),
        sa.Column('youtube', sa.Text(), nullable=True),
        sa.Column('tiktok', sa.Text(), nullable=True),
        sa.Column('linkedin', sa.Text(), nullable=True),
        sa.Column('whatsapp', sa.Text(), nullable=True),
        sa.Column('opening_hours', sa.JSON(), nullable=True),
        sa.Column('additional_info', sa.JSON(), nullable=True),
        sa.Column('email_sent', sa.Boolean(), nullable=True),
        sa.Column('email_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sms_sent', sa.Boolean(), nullable=True),
        sa.Column('sms_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('search_query', sa.Text(), nullable=True),
        sa.Column('scraped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    # List view filter / default ordering
    op.create_index('ix_businesses_search_query', 'businesses', ['search_query'])
    op.create_index('ix_businesses_created_at', 'businesses', ['created_at'])

    op.create_table('scrape_runs',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('search_query', sa.Text(), nullable=False),
        sa.Column('city', sa.Text(), nullable=False),
        sa.Column('neighborhoods', sa.JSON(), nullable=True),
        sa.Column('max_results', sa.Integer(), nullable=True),
        sa.Column('skip_duplicates', sa.Boolean(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('scraped', sa.Integer(), nullable=True),
        sa.Column('inserted', sa.Integer(), nullable=True),
        sa.Column('updated', sa.Integer(), nullable=True),
        sa.Column('duplicates', sa.Integer(), nullable=True),
        sa.Column('failed', sa.Integer(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('duration_secs', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_scrape_runs_created_at', 'scrape_runs', ['created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_scrape_runs_created_at', table_name='scrape_runs')
    op.drop_table('scrape_runs')
    op.drop_index('ix_businesses_created_at', table_name='businesses')
    op.drop_index('ix_businesses_search_query', table_name='businesses')
    op.drop_table('businesses')
