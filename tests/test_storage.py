"""Tests for SQLite persistence."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from tutorcli.exceptions import StorageError
from tutorcli.storage import TutorStorage, compute_streaks


@pytest.fixture
def storage(tmp_path):
    store = TutorStorage(tmp_path / "tutor.db")
    yield store
    store.close()


class TestMessages:
    def test_messages_in_order(self, storage):
        """Messages come back in the order they were saved."""
        storage.save_message("m1", "s1", "user", "Hello")
        storage.save_message("m2", "s1", "assistant", "Hi there")
        storage.save_message("m3", "s2", "user", "Other session")

        messages = storage.get_session_messages("s1")
        assert [(m.message_id, m.role, m.content) for m in messages] == [
            ("m1", "user", "Hello"),
            ("m2", "assistant", "Hi there"),
        ]

    def test_saving_creates_session(self, storage):
        """The first message creates its session row."""
        storage.save_message("m1", "s1", "user", "Hello")
        record = storage.get_session("s1")
        assert record is not None
        assert record.message_count == 1

    def test_persists_across_connections(self, tmp_path):
        """Data survives reopening the database."""
        path = tmp_path / "nested" / "tutor.db"
        with TutorStorage(path) as first:
            first.save_message("m1", "s1", "user", "Hello")
        with TutorStorage(path) as second:
            assert [m.content for m in second.get_session_messages("s1")] == ["Hello"]

    def test_unopenable_path(self, tmp_path):
        """A path that cannot hold a database raises StorageError."""
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            TutorStorage(blocker / "tutor.db")


class TestSessions:
    def test_upsert_keeps_existing_values(self, storage):
        """Fields passed as None leave stored values alone."""
        storage.upsert_session("s1", difficulty="beginner", mode="grammar")
        storage.upsert_session("s1", title="Past tense")
        storage.update_session_summary("s1", "Worked on verbs.")

        record = storage.get_session("s1")
        assert record.difficulty == "beginner"
        assert record.mode == "grammar"
        assert record.title == "Past tense"
        assert record.summary == "Worked on verbs."

    def test_missing_session(self, storage):
        """Unknown ids return None."""
        assert storage.get_session("nope") is None

    def test_list_most_recent_first(self, storage):
        """Sessions are ordered by last activity."""
        storage.save_message("m1", "old", "user", "a")
        storage.save_message("m2", "new", "user", "b")
        storage.save_message("m3", "old", "user", "c")
        sessions = storage.list_sessions()
        assert [s.session_id for s in sessions] == ["old", "new"]
        assert sessions[0].message_count == 2

    def test_find_by_prefix(self, storage):
        """Prefix search matches the start of the id only."""
        storage.save_message("m1", "abcd-1", "user", "a")
        storage.save_message("m2", "abce-2", "user", "b")
        storage.save_message("m3", "zabc-3", "user", "c")
        assert {s.session_id for s in storage.find_sessions("abc")} == {"abcd-1", "abce-2"}
        assert [s.session_id for s in storage.find_sessions("abcd")] == ["abcd-1"]


class TestVocabulary:
    def test_save_ignores_duplicates(self, storage):
        """A word is stored once per collection."""
        assert storage.save_vocab_items(["apple", "pear"], "fruits") == 2
        assert storage.save_vocab_items(["apple", "plum"], "fruits") == 1
        assert storage.save_vocab_items(["apple"], "default") == 1
        assert len(storage.get_all_vocab()) == 4

    def test_definition_only_fills_blanks(self, storage):
        """Looked-up definitions never overwrite an existing one."""
        storage.save_vocab_items(["apple", "pear"], "default", {"apple": "mine"})
        storage.update_vocab_definition("apple", "default", "theirs")
        storage.update_vocab_definition("pear", "default", "a sweet fruit")
        words = {v.word: v.definition for v in storage.get_all_vocab()}
        assert words == {"apple": "mine", "pear": "a sweet fruit"}

    def test_collections_include_implicit(self, storage):
        """Collections come from both the collection table and saved words."""
        storage.create_collection("empty", "Nothing yet")
        storage.save_vocab_items(["apple", "pear"], "fruits")
        collections = {c.name: c.word_count for c in storage.get_collections()}
        assert collections == {"empty": 0, "fruits": 2}

    def test_mastery_moves_both_ways(self, storage):
        """Each review moves mastery by one and may go negative."""
        storage.save_vocab_items(["apple"])
        item = storage.get_all_vocab()[0]
        storage.update_vocab_mastery(item.id, False)
        storage.update_vocab_mastery(item.id, False)
        storage.update_vocab_mastery(item.id, True)
        updated = storage.get_vocab_item(item.id)
        assert updated.mastery_level == -1
        assert updated.times_reviewed == 3
        assert updated.last_reviewed_at is not None

    def test_practice_order(self, storage):
        """Lowest mastery first, then least recently reviewed, limited."""
        storage.save_vocab_items(["a", "b", "c", "d"])
        ids = {v.word: v.id for v in storage.get_all_vocab()}
        storage.update_vocab_mastery(ids["a"], True)
        storage.update_vocab_mastery(ids["b"], False)
        storage.update_vocab_mastery(ids["c"], True)
        storage.update_vocab_mastery(ids["c"], False)

        words = [v.word for v in storage.get_vocab_for_practice(limit=3)]
        assert words == ["b", "d", "c"]

    def test_practice_by_collection(self, storage):
        """A collection filter restricts the practice set."""
        storage.save_vocab_items(["apple"], "fruits")
        storage.save_vocab_items(["run"], "verbs")
        assert [v.word for v in storage.get_vocab_for_practice("verbs")] == ["run"]

    def test_vocab_stats(self, storage):
        """Words at mastery three or more count as mastered."""
        storage.save_vocab_items(["apple", "pear"], "fruits")
        storage.save_vocab_items(["run"], "verbs")
        apple = storage.get_vocab_by_collection("fruits")[-1]
        for _ in range(3):
            storage.update_vocab_mastery(apple.id, True)
        stats = storage.get_vocab_stats()
        assert (stats.total, stats.mastered, stats.learning, stats.collections) == (3, 1, 2, 2)


class TestLearningStats:
    def test_empty_database(self, storage):
        """An empty database reports zeros."""
        stats = storage.get_learning_stats()
        assert stats.total_sessions == 0
        assert stats.current_streak == 0
        assert stats.last_active is None
        assert stats.favorite_mode is None

    def test_aggregates(self, storage):
        """Counts cover sessions with messages, roles, and modes."""
        storage.save_message("m1", "s1", "user", "Hi")
        storage.save_message("m2", "s1", "assistant", "Hello")
        storage.save_message("m3", "s2", "user", "Hey")
        storage.upsert_session("s1", mode="grammar")
        storage.upsert_session("s2", mode="grammar")
        storage.upsert_session("s3", mode="exam")

        stats = storage.get_learning_stats()
        assert stats.total_sessions == 2
        assert stats.sessions_this_week == 2
        assert stats.total_messages == 3
        assert stats.user_messages == 2
        assert stats.assistant_messages == 1
        assert stats.avg_messages_per_session == 1.5
        assert stats.favorite_mode == "grammar"
        assert stats.mode_breakdown == {"grammar": 2, "exam": 1}
        assert stats.current_streak == 1
        assert stats.last_active == datetime.now(timezone.utc).date().isoformat()


class TestStreaks:
    def test_no_days(self):
        assert compute_streaks([], date(2024, 5, 10)) == (0, 0)

    def test_current_includes_today(self):
        """A run ending today counts as current."""
        today = date(2024, 5, 10)
        days = [today - timedelta(days=n) for n in range(3)]
        assert compute_streaks(days, today) == (3, 3)

    def test_current_from_yesterday(self):
        """Not practising yet today keeps yesterday's streak alive."""
        today = date(2024, 5, 10)
        days = [date(2024, 5, 8), date(2024, 5, 9)]
        assert compute_streaks(days, today) == (2, 2)

    def test_broken_streak(self):
        """A gap of two days resets the current streak."""
        today = date(2024, 5, 10)
        days = [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3), date(2024, 5, 7)]
        assert compute_streaks(days, today) == (0, 3)
