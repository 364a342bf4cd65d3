"""
PostgreSQL connection pool and schema. The pool is created once in the app
lifespan and handed to the stores; nothing here is module-global.
"""

import logging

import asyncpg

from supportdesk.config import Settings

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS tickets (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'in-progress', 'resolved')),
    priority TEXT NOT NULL DEFAULT 'medium'
        CHECK (priority IN ('low', 'medium', 'high')),
    customer_id TEXT NOT NULL,
    customer_name TEXT,
    customer_email TEXT,
    session_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    resolved_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS live_chats (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    ticket_id UUID,
    customer_id TEXT NOT NULL,
    consultant_id TEXT,
    status TEXT NOT NULL DEFAULT 'open'
        CHECK (status IN ('open', 'in-progress', 'closed')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    started_at TIMESTAMPTZ,
    closed_at TIMESTAMPTZ,
    last_message_at TIMESTAMPTZ
);

-- one live session per ticket
CREATE UNIQUE INDEX IF NOT EXISTS live_chats_one_live_per_ticket
    ON live_chats (ticket_id) WHERE status <> 'closed';

CREATE TABLE IF NOT EXISTS live_chat_messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    seq BIGSERIAL,
    session_id UUID NOT NULL REFERENCES live_chats(id) ON DELETE CASCADE,
    sender_id TEXT NOT NULL,
    sender_role TEXT NOT NULL CHECK (sender_role IN ('customer', 'admin')),
    text TEXT NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS live_chat_messages_session_order
    ON live_chat_messages (session_id, timestamp, seq);

CREATE TABLE IF NOT EXISTS meetings (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    date TIMESTAMPTZ NOT NULL,
    duration_minutes INTEGER NOT NULL DEFAULT 30,
    location TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'video',
    status TEXT NOT NULL DEFAULT 'upcoming',
    consultant_id TEXT NOT NULL,
    customer_id TEXT NOT NULL,
    session_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS assistant_conversations (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT 'New chat',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS assistant_messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    seq BIGSERIAL,
    conversation_id UUID NOT NULL REFERENCES assistant_conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE OR REPLACE FUNCTION notify_change() RETURNS trigger AS $$
DECLARE
    row_data RECORD;
    key TEXT;
BEGIN
    IF TG_OP = 'DELETE' THEN
        row_data := OLD;
    ELSE
        row_data := NEW;
    END IF;
    IF TG_TABLE_NAME = 'live_chat_messages' THEN
        key := row_data.session_id::text;
    ELSE
        key := row_data.id::text;
    END IF;
    PERFORM pg_notify(
        TG_TABLE_NAME,
        json_build_object('op', lower(TG_OP), 'id', row_data.id::text, 'key', key)::text
    );
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS tickets_notify ON tickets;
CREATE TRIGGER tickets_notify AFTER INSERT OR UPDATE OR DELETE ON tickets
    FOR EACH ROW EXECUTE FUNCTION notify_change();

DROP TRIGGER IF EXISTS live_chats_notify ON live_chats;
CREATE TRIGGER live_chats_notify AFTER INSERT OR UPDATE OR DELETE ON live_chats
    FOR EACH ROW EXECUTE FUNCTION notify_change();

DROP TRIGGER IF EXISTS live_chat_messages_notify ON live_chat_messages;
CREATE TRIGGER live_chat_messages_notify AFTER INSERT ON live_chat_messages
    FOR EACH ROW EXECUTE FUNCTION notify_change();
"""


async def create_pool(settings: Settings) -> asyncpg.Pool:
    pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.database_min_pool_size,
        max_size=settings.database_max_pool_size,
    )
    logger.info("Database pool ready (min=%d, max=%d)", settings.database_min_pool_size, settings.database_max_pool_size)
    return pool


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)
    logger.info("Database schema applied")


async def close_pool(pool: asyncpg.Pool | None) -> None:
    if pool is not None:
        await pool.close()
