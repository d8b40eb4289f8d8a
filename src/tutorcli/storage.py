"""
Tutor Storage - SQLite-backed persistence for sessions and vocabulary.

Enables:
- Conversation history that survives restarts (/history, /resume)
- Session titles and summaries for fast resume
- Vocabulary collections with per-word mastery tracking
- Aggregate learning statistics (/stats)
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable

from tutorcli.exceptions import StorageError

MASTERED_LEVEL = 3
DEFAULT_COLLECTION = "default"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MessageRecord:
    """Persisted conversation turn."""

    message_id: str
    session_id: str
    role: str
    content: str
    created_at: str


@dataclass
class SessionRecord:
    """Persisted session metadata."""

    session_id: str
    created_at: str
    updated_at: str
    summary: str | None = None
    title: str | None = None
    difficulty: str | None = None
    mode: str | None = None
    message_count: int = 0


@dataclass
class VocabularyItem:
    """A saved word. ``mastery_level`` moves by one per review and may go negative."""

    id: int
    word: str
    collection: str = DEFAULT_COLLECTION
    definition: str | None = None
    example: str | None = None
    mastery_level: int = 0
    times_reviewed: int = 0
    last_reviewed_at: str | None = None
    created_at: str = ""

    @property
    def mastered(self) -> bool:
        return self.mastery_level >= MASTERED_LEVEL


@dataclass
class CollectionInfo:
    name: str
    word_count: int
    description: str | None = None


@dataclass
class VocabStats:
    total: int = 0
    mastered: int = 0
    learning: int = 0
    collections: int = 0


@dataclass
class LearningStats:
    """Aggregates shown by /stats."""

    total_sessions: int = 0
    sessions_this_week: int = 0
    sessions_this_month: int = 0
    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    avg_messages_per_session: float = 0.0
    vocab_total: int = 0
    vocab_mastered: int = 0
    vocab_learning: int = 0
    reviewed_today: int = 0
    total_reviews: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_active: str | None = None
    favorite_mode: str | None = None
    mode_breakdown: dict[str, int] = field(default_factory=dict)


def compute_streaks(days: Iterable[date], today: date) -> tuple[int, int]:
    """Return (current, longest) runs of consecutive active days.

    The current streak counts back from today, or from yesterday when the
    learner has not been active yet today.
    """
    active = sorted(set(days))
    if not active:
        return 0, 0

    longest = run = 1
    for prev, cur in zip(active, active[1:]):
        run = run + 1 if cur - prev == timedelta(days=1) else 1
        longest = max(longest, run)

    active_set = set(active)
    cursor = today if today in active_set else today - timedelta(days=1)
    current = 0
    while cursor in active_set:
        current += 1
        cursor -= timedelta(days=1)
    return current, longest


class TutorStorage:
    """SQLite-backed persistence for the tutor.

    Usage:
        storage = TutorStorage("~/.tutorcli/tutor.db")
        storage.save_message(msg_id, session_id, "user", "Hello!")
        storage.upsert_session(session_id, difficulty="beginner", mode="general")
        storage.save_vocab_items(["apple", "banana"], "fruits")
        stats = storage.get_learning_stats()
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Could not open database: {e}", {"path": str(self._db_path)}) from e
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                message_id TEXT,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id);

            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                summary TEXT,
                title TEXT,
                difficulty TEXT,
                mode TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS vocabulary (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                word TEXT NOT NULL,
                definition TEXT,
                example TEXT,
                collection TEXT DEFAULT 'default',
                mastery_level INTEGER DEFAULT 0,
                times_reviewed INTEGER DEFAULT 0,
                last_reviewed_at TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(word, collection)
            );

            CREATE TABLE IF NOT EXISTS collections (
                name TEXT PRIMARY KEY,
                description TEXT,
                created_at TEXT NOT NULL
            );
        """)
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> TutorStorage:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # --- Messages ---

    def save_message(self, message_id: str, session_id: str, role: str, content: str) -> None:
        """Append a message and touch its session row."""
        now = _now()
        self._conn.execute(
            "INSERT INTO messages (message_id, session_id, role, content, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (message_id, session_id, role, content, now),
        )
        self._conn.execute(
            "INSERT INTO sessions (session_id, created_at, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(session_id) DO UPDATE SET updated_at = excluded.updated_at",
            (session_id, now, now),
        )
        self._conn.commit()

    def get_session_messages(self, session_id: str) -> list[MessageRecord]:
        """Messages for a session in conversation order."""
        rows = self._conn.execute(
            "SELECT * FROM messages WHERE session_id = ? ORDER BY id ASC", (session_id,)
        ).fetchall()
        return [
            MessageRecord(
                message_id=r["message_id"] or str(r["id"]),
                session_id=r["session_id"],
                role=r["role"],
                content=r["content"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # --- Sessions ---

    def upsert_session(
        self,
        session_id: str,
        *,
        summary: str | None = None,
        title: str | None = None,
        difficulty: str | None = None,
        mode: str | None = None,
    ) -> None:
        """Create or update a session row; None values keep the stored value."""
        now = _now()
        self._conn.execute(
            "INSERT INTO sessions (session_id, summary, title, difficulty, mode, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(session_id) DO UPDATE SET "
            "summary = COALESCE(excluded.summary, sessions.summary), "
            "title = COALESCE(excluded.title, sessions.title), "
            "difficulty = COALESCE(excluded.difficulty, sessions.difficulty), "
            "mode = COALESCE(excluded.mode, sessions.mode), "
            "updated_at = excluded.updated_at",
            (session_id, summary, title, difficulty, mode, now, now),
        )
        self._conn.commit()

    def update_session_summary(self, session_id: str, summary: str) -> None:
        self.upsert_session(session_id, summary=summary)

    def update_session_title(self, session_id: str, title: str) -> None:
        self.upsert_session(session_id, title=title)

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Get a session record by ID."""
        row = self._conn.execute(
            "SELECT s.*, (SELECT COUNT(*) FROM messages m WHERE m.session_id = s.session_id) "
            "AS message_count FROM sessions s WHERE s.session_id = ?",
            (session_id,),
        ).fetchone()
        if not row:
            return None
        return self._session_from_row(row)

    def list_sessions(self, limit: int = 20) -> list[SessionRecord]:
        """List sessions, most recently active first."""
        rows = self._conn.execute(
            "SELECT s.*, (SELECT COUNT(*) FROM messages m WHERE m.session_id = s.session_id) "
            "AS message_count FROM sessions s ORDER BY s.updated_at DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [self._session_from_row(r) for r in rows]

    def find_sessions(self, prefix: str, limit: int = 50) -> list[SessionRecord]:
        """Sessions whose id starts with ``prefix``, most recent first."""
        return [s for s in self.list_sessions(limit) if s.session_id.startswith(prefix)]

    @staticmethod
    def _session_from_row(row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            session_id=row["session_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            summary=row["summary"],
            title=row["title"],
            difficulty=row["difficulty"],
            mode=row["mode"],
            message_count=row["message_count"],
        )

    # --- Vocabulary ---

    def save_vocab_items(
        self,
        words: list[str],
        collection: str = DEFAULT_COLLECTION,
        definitions: dict[str, str] | None = None,
    ) -> int:
        """Save words into a collection. Returns how many were new."""
        definitions = definitions or {}
        now = _now()
        saved = 0
        for word in words:
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO vocabulary (word, definition, collection, created_at) "
                "VALUES (?, ?, ?, ?)",
                (word, definitions.get(word), collection, now),
            )
            saved += cursor.rowcount
        self._conn.commit()
        return saved

    def update_vocab_definition(self, word: str, collection: str, definition: str) -> None:
        """Fill in a definition for a word that does not have one yet."""
        self._conn.execute(
            "UPDATE vocabulary SET definition = ? "
            "WHERE word = ? AND collection = ? AND (definition IS NULL OR definition = '')",
            (definition, word, collection),
        )
        self._conn.commit()

    def create_collection(self, name: str, description: str | None = None) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO collections (name, description, created_at) VALUES (?, ?, ?)",
            (name, description, _now()),
        )
        self._conn.commit()

    def get_collections(self) -> list[CollectionInfo]:
        """Collections with word counts, including ones only present on words."""
        rows = self._conn.execute(
            "SELECT name, MAX(description) AS description, SUM(words) AS word_count FROM ("
            "  SELECT name, description, 0 AS words FROM collections"
            "  UNION ALL"
            "  SELECT collection AS name, NULL AS description, COUNT(*) AS words "
            "  FROM vocabulary GROUP BY collection"
            ") GROUP BY name ORDER BY name"
        ).fetchall()
        return [
            CollectionInfo(name=r["name"], word_count=r["word_count"] or 0, description=r["description"])
            for r in rows
        ]

    def get_vocab_by_collection(self, collection: str) -> list[VocabularyItem]:
        rows = self._conn.execute(
            "SELECT * FROM vocabulary WHERE collection = ? ORDER BY created_at DESC, id DESC",
            (collection,),
        ).fetchall()
        return [self._vocab_from_row(r) for r in rows]

    def get_all_vocab(self, limit: int = 100) -> list[VocabularyItem]:
        rows = self._conn.execute(
            "SELECT * FROM vocabulary ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._vocab_from_row(r) for r in rows]

    def get_vocab_stats(self) -> VocabStats:
        row = self._conn.execute(
            "SELECT COUNT(*) AS total, "
            "SUM(CASE WHEN mastery_level >= ? THEN 1 ELSE 0 END) AS mastered, "
            "COUNT(DISTINCT collection) AS collections FROM vocabulary",
            (MASTERED_LEVEL,),
        ).fetchone()
        total = row["total"] or 0
        mastered = row["mastered"] or 0
        return VocabStats(
            total=total,
            mastered=mastered,
            learning=total - mastered,
            collections=row["collections"] or 0,
        )

    def get_vocab_for_practice(
        self, collection: str | None = None, limit: int = 10
    ) -> list[VocabularyItem]:
        """Words most in need of review: lowest mastery, then least recently seen."""
        query = "SELECT * FROM vocabulary"
        params: list[Any] = []
        if collection:
            query += " WHERE collection = ?"
            params.append(collection)
        query += " ORDER BY mastery_level ASC, COALESCE(last_reviewed_at, '') ASC, id ASC LIMIT ?"
        params.append(limit)
        rows = self._conn.execute(query, params).fetchall()
        return [self._vocab_from_row(r) for r in rows]

    def update_vocab_mastery(self, vocab_id: int, correct: bool) -> None:
        """Apply a +1/-1 mastery delta and record the review."""
        self._conn.execute(
            "UPDATE vocabulary SET mastery_level = mastery_level + ?, "
            "times_reviewed = times_reviewed + 1, last_reviewed_at = ? WHERE id = ?",
            (1 if correct else -1, _now(), vocab_id),
        )
        self._conn.commit()

    def get_vocab_item(self, vocab_id: int) -> VocabularyItem | None:
        row = self._conn.execute("SELECT * FROM vocabulary WHERE id = ?", (vocab_id,)).fetchone()
        return self._vocab_from_row(row) if row else None

    @staticmethod
    def _vocab_from_row(row: sqlite3.Row) -> VocabularyItem:
        return VocabularyItem(
            id=row["id"],
            word=row["word"],
            collection=row["collection"] or DEFAULT_COLLECTION,
            definition=row["definition"],
            example=row["example"],
            mastery_level=row["mastery_level"] or 0,
            times_reviewed=row["times_reviewed"] or 0,
            last_reviewed_at=row["last_reviewed_at"],
            created_at=row["created_at"],
        )

    # --- Statistics ---

    def get_learning_stats(self, now: datetime | None = None) -> LearningStats:
        """Aggregate session, message, vocabulary, streak and mode statistics."""
        now = now or datetime.now(timezone.utc)
        week_ago = (now - timedelta(days=7)).isoformat()
        month_ago = (now - timedelta(days=30)).isoformat()
        today = now.date()

        stats = LearningStats()

        row = self._conn.execute(
            "SELECT COUNT(*) AS total, "
            "SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END) AS week, "
            "SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END) AS month "
            "FROM sessions WHERE session_id IN (SELECT DISTINCT session_id FROM messages)",
            (week_ago, month_ago),
        ).fetchone()
        stats.total_sessions = row["total"] or 0
        stats.sessions_this_week = row["week"] or 0
        stats.sessions_this_month = row["month"] or 0

        row = self._conn.execute(
            "SELECT COUNT(*) AS total, "
            "SUM(CASE WHEN role = 'user' THEN 1 ELSE 0 END) AS user_count, "
            "SUM(CASE WHEN role = 'assistant' THEN 1 ELSE 0 END) AS assistant_count "
            "FROM messages"
        ).fetchone()
        stats.total_messages = row["total"] or 0
        stats.user_messages = row["user_count"] or 0
        stats.assistant_messages = row["assistant_count"] or 0
        if stats.total_sessions:
            stats.avg_messages_per_session = round(stats.total_messages / stats.total_sessions, 1)

        vocab = self.get_vocab_stats()
        stats.vocab_total = vocab.total
        stats.vocab_mastered = vocab.mastered
        stats.vocab_learning = vocab.learning
        row = self._conn.execute(
            "SELECT SUM(times_reviewed) AS reviews, "
            "SUM(CASE WHEN substr(last_reviewed_at, 1, 10) = ? THEN 1 ELSE 0 END) AS today "
            "FROM vocabulary",
            (today.isoformat(),),
        ).fetchone()
        stats.total_reviews = row["reviews"] or 0
        stats.reviewed_today = row["today"] or 0

        day_rows = self._conn.execute(
            "SELECT DISTINCT substr(created_at, 1, 10) AS day FROM messages ORDER BY day"
        ).fetchall()
        days = [date.fromisoformat(r["day"]) for r in day_rows]
        stats.current_streak, stats.longest_streak = compute_streaks(days, today)
        stats.last_active = days[-1].isoformat() if days else None

        mode_rows = self._conn.execute(
            "SELECT mode, COUNT(*) AS count FROM sessions WHERE mode IS NOT NULL "
            "GROUP BY mode ORDER BY count DESC, mode ASC"
        ).fetchall()
        stats.mode_breakdown = {r["mode"]: r["count"] for r in mode_rows}
        if mode_rows:
            stats.favorite_mode = mode_rows[0]["mode"]
        return stats
