"""
ByteBasket Dietary Tables Migration
Creates the restriction catalog and user preference tables in PostgreSQL.
"""

DIETARY_MIGRATION_SQL = """
-- Dietary restriction catalog and user preferences
-- Safe to run multiple times

CREATE TABLE IF NOT EXISTS dietary_restrictions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(100) NOT NULL UNIQUE,
    category VARCHAR(20) NOT NULL
        CHECK (category IN ('allergen', 'lifestyle', 'religious', 'medical')),
    description VARCHAR(500),
    icon VARCHAR(255),
    is_allergen BOOLEAN NOT NULL DEFAULT FALSE,
    severity_levels TEXT[] NOT NULL DEFAULT ARRAY['mild', 'strict'],
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_dietary_restrictions_category_active
    ON dietary_restrictions(category, is_active);
CREATE INDEX IF NOT EXISTS idx_dietary_restrictions_allergen
    ON dietary_restrictions(is_allergen);

CREATE TABLE IF NOT EXISTS user_dietary_preferences (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id VARCHAR(64) NOT NULL,
    restriction_id UUID NOT NULL
        REFERENCES dietary_restrictions(id) ON DELETE CASCADE,
    severity VARCHAR(10) NOT NULL DEFAULT 'mild'
        CHECK (severity IN ('mild', 'strict')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    notes VARCHAR(500),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE (user_id, restriction_id)
);

CREATE INDEX IF NOT EXISTS idx_user_dietary_preferences_user_active
    ON user_dietary_preferences(user_id, is_active);
CREATE INDEX IF NOT EXISTS idx_user_dietary_preferences_restriction_severity
    ON user_dietary_preferences(restriction_id, severity);
"""


def get_migration_sql() -> str:
    """Return the SQL migration script."""
    return DIETARY_MIGRATION_SQL
