"""Achievement engine tables.

Creates users, achievements, platform_activities, course_progress,
user_progress, and notifications.

Revision ID: 001_achievement_tables
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_achievement_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(128) PRIMARY KEY,
            display_name VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Achievement catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            required_action VARCHAR(64) NOT NULL,
            required_count INTEGER NOT NULL DEFAULT 1,
            dance_type VARCHAR(32),
            points INTEGER NOT NULL DEFAULT 0,
            icon_url VARCHAR(256),
            dance_style VARCHAR(32) NOT NULL DEFAULT 'all',
            level VARCHAR(16) NOT NULL DEFAULT 'beginner',
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ
        )
    """)

    # --- Activity log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS platform_activities (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(64) NOT NULL,
            details JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_platform_activities_user
        ON platform_activities(user_id, created_at)
    """)

    # --- Course progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS course_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            course_id VARCHAR(128) NOT NULL,
            dance_type VARCHAR(32),
            completed_lessons INTEGER NOT NULL DEFAULT 0,
            total_lessons INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ,
            CONSTRAINT course_progress_user_course_key UNIQUE (user_id, course_id)
        )
    """)

    # --- User progress (versioned) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id VARCHAR(128) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            earned_achievement_ids JSONB NOT NULL DEFAULT '[]',
            points INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            platform_stats JSONB NOT NULL DEFAULT '{}',
            version INTEGER NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            message TEXT NOT NULL DEFAULT '',
            details JSONB NOT NULL DEFAULT '{}',
            dedup_key VARCHAR(256) UNIQUE,
            read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_read
        ON notifications(user_id, read)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS course_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS platform_activities CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
