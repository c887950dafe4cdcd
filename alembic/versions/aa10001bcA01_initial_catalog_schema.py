"""initial catalog schema

Revision ID: aa10001bcA01
Revises:
Create Date: 2026-10-19 10:00:00.000000

Hey future me - the three tables of the catalog engine.

TABLES:
- setlists: named lists per band, is_catalog marks THE catalog
- songs: band-wide song records, one per (band, title_key, artist_key)
- setlist_songs: membership with position and per-list overrides

INDEXES:
- uq_setlists_one_catalog_per_band: partial unique index, at most one flagged catalog per band
- uq_songs_band_title_artist: unique index on the case-folded keys, settles concurrent create races
- uq_setlist_songs_setlist_song: a song is at most once in a list
- ix_setlist_songs_position: ordered fetch per list (NOT unique, reposition goes through n+i)
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'aa10001bcA01'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # === setlists ===
    op.create_table(
        'setlists',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('band_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_catalog', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_setlists_band_id', 'setlists', ['band_id'])
    op.create_index(
        'uq_setlists_one_catalog_per_band',
        'setlists',
        ['band_id'],
        unique=True,
        sqlite_where=sa.text('is_catalog = 1'),
        postgresql_where=sa.text('is_catalog'),
    )

    # === songs ===
    op.create_table(
        'songs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('band_id', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('artist', sa.String(255), nullable=False),
        sa.Column('title_key', sa.String(255), nullable=False),
        sa.Column('artist_key', sa.String(255), nullable=False),
        sa.Column('bpm', sa.Integer, nullable=True),
        sa.Column('duration_seconds', sa.Integer, nullable=True),
        sa.Column('tuning', sa.String(64), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('album_artwork', sa.String(512), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_songs_band_id', 'songs', ['band_id'])
    op.create_index(
        'uq_songs_band_title_artist',
        'songs',
        ['band_id', 'title_key', 'artist_key'],
        unique=True,
    )

    # === setlist_songs ===
    op.create_table(
        'setlist_songs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'setlist_id',
            sa.String(36),
            sa.ForeignKey('setlists.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'song_id',
            sa.String(36),
            sa.ForeignKey('songs.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('bpm_override', sa.Integer, nullable=True),
        sa.Column('tuning_override', sa.String(64), nullable=True),
        sa.Column('duration_override', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('setlist_id', 'song_id', name='uq_setlist_songs_setlist_song'),
    )
    op.create_index('ix_setlist_songs_position', 'setlist_songs', ['setlist_id', 'position'])
    op.create_index('ix_setlist_songs_song_id', 'setlist_songs', ['song_id'])


def downgrade() -> None:
    op.drop_index('ix_setlist_songs_song_id', table_name='setlist_songs')
    op.drop_index('ix_setlist_songs_position', table_name='setlist_songs')
    op.drop_table('setlist_songs')

    op.drop_index('uq_songs_band_title_artist', table_name='songs')
    op.drop_index('ix_songs_band_id', table_name='songs')
    op.drop_table('songs')

    op.drop_index('uq_setlists_one_catalog_per_band', table_name='setlists')
    op.drop_index('ix_setlists_band_id', table_name='setlists')
    op.drop_table('setlists')
