import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from goodrun.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- USERS
-- ============================================================
CREATE TABLE IF NOT EXISTS users (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT,
    email         TEXT NOT NULL UNIQUE COLLATE NOCASE,
    role          TEXT NOT NULL CHECK(role IN ('admin','volunteer')),
    password_hash TEXT NOT NULL,
    phone_no      TEXT,
    birthday      TEXT,
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

-- ============================================================
-- AUTH SESSIONS / THROTTLE
-- ============================================================
CREATE TABLE IF NOT EXISTS auth_sessions (
    token_hash TEXT PRIMARY KEY,
    user_id    INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    expires_at REAL NOT NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_auth_sessions_user ON auth_sessions(user_id);

CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- ORGANISATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS organisations (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL,
    contact_no   TEXT,
    office_hours TEXT,
    address      TEXT,
    created_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_organisations_name ON organisations(name);

-- ============================================================
-- JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    organisation_id INTEGER NOT NULL REFERENCES organisations(id),
    assigned_to     INTEGER REFERENCES users(id),
    name            TEXT,
    address         TEXT,
    weight          REAL CHECK(weight IS NULL OR weight >= 0),
    value           REAL CHECK(value IS NULL OR value >= 0),
    size            TEXT CHECK(size IN ('tiny','small','medium','large')) DEFAULT 'small',
    intake_priority TEXT CHECK(intake_priority IN ('low','medium','high')) DEFAULT 'medium',
    progress_stage  TEXT NOT NULL DEFAULT 'available'
                    CHECK(progress_stage IN ('available','reserved','in_delivery',
                                             'completed','cancelled_in_delivery')),
    follow_up       INTEGER NOT NULL DEFAULT 0,
    deadline_date   TEXT,
    dropoff_date    TEXT,
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    -- reserved and in-delivery jobs always have an assignee
    CHECK(progress_stage NOT IN ('reserved','in_delivery') OR assigned_to IS NOT NULL)
);

CREATE INDEX IF NOT EXISTS idx_jobs_stage ON jobs(progress_stage);
CREATE INDEX IF NOT EXISTS idx_jobs_assigned ON jobs(assigned_to);
CREATE INDEX IF NOT EXISTS idx_jobs_organisation ON jobs(organisation_id);
CREATE INDEX IF NOT EXISTS idx_jobs_deadline ON jobs(deadline_date);

-- ============================================================
-- JOB EVENTS
-- ============================================================
CREATE TABLE IF NOT EXISTS job_events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id      INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    event       TEXT NOT NULL
                CHECK(event IN ('create','reserve','advance','cancel','requeue')),
    from_stage  TEXT,
    to_stage    TEXT NOT NULL,
    actor_id    INTEGER REFERENCES users(id) ON DELETE SET NULL,
    occurred_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_job_events_job ON job_events(job_id);
"""


MIGRATIONS = [
    # v0.2: volunteer contact details
    "ALTER TABLE users ADD COLUMN phone_no TEXT",
    "ALTER TABLE users ADD COLUMN birthday TEXT",
]


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    # Run migrations idempotently (ALTER TABLE fails if column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # column already exists
    conn.close()
