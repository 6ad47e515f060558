import io
import logging
import threading

import pytest

from config import Settings
from database import MappingStore, init_store
from schemas.url import Mapping
from services.url_service import TokenSpaceExhausted


JOURNAL = "abc123 https://example.com\ndef456 https://another.com\n"


@pytest.fixture
def journal(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_text("")
    return path


@pytest.fixture
def store(journal):
    return MappingStore(journal)


class TestMapping:
    """Tests for journal line format"""

    def test_to_line(self):
        assert Mapping(token="abc123", target="https://example.com").to_line() == "abc123 https://example.com\n"

    def test_from_line_splits_on_first_space(self):
        mapping = Mapping.from_line("tok https://example.com/a b\n")
        assert mapping.token == "tok"
        assert mapping.target == "https://example.com/a b"

    def test_from_line_strips_crlf(self):
        assert Mapping.from_line("tok https://example.com\r\n").target == "https://example.com"

    def test_from_line_without_separator(self):
        assert Mapping.from_line("justonefield\n") is None


class TestLoad:
    """Tests for replaying the journal"""

    def test_load_two_entries(self, store):
        """Test the two-line journal loads both mappings"""
        loaded = store.load(io.StringIO(JOURNAL))

        assert loaded == 2
        assert len(store) == 2
        assert store.resolve("abc123") == "https://example.com"
        assert store.resolve("def456") == "https://another.com"

    def test_load_skips_malformed_lines(self, store, caplog):
        """Test lines without a separator are skipped and reported"""
        with caplog.at_level(logging.WARNING, logger="url_shortener"):
            loaded = store.load(io.StringIO("garbage\nabc123 https://example.com\n\n"))

        assert loaded == 1
        assert store.resolve("abc123") == "https://example.com"
        assert "Skipping invalid line" in caplog.text

    def test_load_is_idempotent(self, store):
        """Test loading the same journal twice gives the same table"""
        store.load(io.StringIO(JOURNAL))
        first = {token: store.resolve(token) for token in ("abc123", "def456")}

        store.load(io.StringIO(JOURNAL))

        assert len(store) == 2
        assert {token: store.resolve(token) for token in ("abc123", "def456")} == first

    def test_load_journal_file(self, journal, store):
        journal.write_text(JOURNAL)

        assert store.load_journal() == 2
        assert store.resolve("def456") == "https://another.com"

    def test_load_journal_with_undecodable_bytes(self, journal, store):
        """Test a journal with invalid UTF-8 still loads every line"""
        journal.write_bytes(b"abc12 https://example.com\nxyz99 https://ex.com/\xff\n")

        assert store.load_journal() == 2
        assert store.resolve("abc12") == "https://example.com"
        assert store.resolve("xyz99") == "https://ex.com/\ufffd"

    def test_init_store_with_undecodable_bytes(self, journal):
        journal.write_bytes(b"abc12 https://example.com\nxyz99 https://ex.com/\xff\n")
        settings = Settings(URLS_FILE=str(journal), BASE_URL="test.com", PASSWORD="pw")

        assert len(init_store(settings)) == 2

    def test_load_journal_missing_file_is_not_fatal(self, tmp_path, caplog):
        """Test an unreadable journal is logged and leaves the table empty"""
        store = MappingStore(tmp_path / "missing.txt")

        with caplog.at_level(logging.ERROR, logger="url_shortener"):
            assert store.load_journal() == 0

        assert len(store) == 0
        assert "Could not read journal" in caplog.text


class TestInsertResolve:
    """Tests for writing and reading mappings"""

    def test_insert_then_resolve(self, store):
        store.insert("abc12", "https://example.com")

        assert store.resolve("abc12") == "https://example.com"
        assert "abc12" in store

    def test_resolve_unknown(self, store):
        assert store.resolve("nope") is None
        assert "nope" not in store

    def test_insert_appends_exact_line(self, journal, store):
        """Test insert writes exactly one journal line"""
        store.insert("abc123", "https://example.com")

        assert journal.read_text() == "abc123 https://example.com\n"

    def test_insert_appends_never_rewrites(self, journal, store):
        journal.write_text(JOURNAL)

        store.insert("ghi789", "https://third.com")

        assert journal.read_text() == JOURNAL + "ghi789 https://third.com\n"

    def test_insert_keeps_mapping_when_append_fails(self, tmp_path, caplog):
        """Test a failed journal write is logged but the mapping is kept"""
        # a directory cannot be opened for appending
        store = MappingStore(tmp_path)

        with caplog.at_level(logging.ERROR, logger="url_shortener"):
            store.insert("abc12", "https://example.com")

        assert store.resolve("abc12") == "https://example.com"
        assert "Could not write to journal" in caplog.text

    def test_add_generates_free_token(self, store):
        token = store.add("https://example.com", max_attempts=10)

        assert len(token) == 5
        assert store.resolve(token) == "https://example.com"

    def test_add_retries_taken_tokens(self, store, monkeypatch):
        """Test a taken candidate is skipped"""
        candidates = iter(["taken", "taken", "fresh"])
        monkeypatch.setattr("services.url_service.random_token", lambda: next(candidates))
        store.insert("taken", "https://example.com")

        assert store.add("https://other.com", max_attempts=10) == "fresh"
        assert store.resolve("taken") == "https://example.com"

    def test_add_gives_up_after_max_attempts(self, store, monkeypatch):
        monkeypatch.setattr("services.url_service.random_token", lambda: "taken")
        store.insert("taken", "https://example.com")

        with pytest.raises(TokenSpaceExhausted):
            store.add("https://other.com", max_attempts=3)
        assert len(store) == 1

    def test_concurrent_adds_are_unique(self, journal, store):
        """Test tokens stay unique across threads"""
        tokens = []

        def worker():
            for _ in range(25):
                tokens.append(store.add("https://example.com", max_attempts=1000))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(tokens)) == 200
        assert len(store) == 200
        assert len(journal.read_text().splitlines()) == 200


class TestInitStore:
    """Tests for startup"""

    def test_creates_missing_journal(self, tmp_path):
        settings = Settings(URLS_FILE=str(tmp_path / "new.txt"), BASE_URL="test.com", PASSWORD="pw")

        store = init_store(settings)

        assert (tmp_path / "new.txt").exists()
        assert len(store) == 0

    def test_replays_existing_journal(self, journal):
        journal.write_text(JOURNAL)
        settings = Settings(URLS_FILE=str(journal), BASE_URL="test.com", PASSWORD="pw")

        store = init_store(settings)

        assert store.resolve("abc123") == "https://example.com"

    def test_creation_failure_is_fatal(self, tmp_path):
        settings = Settings(URLS_FILE=str(tmp_path / "no" / "such" / "urls.txt"), BASE_URL="test.com", PASSWORD="pw")

        with pytest.raises(OSError):
            init_store(settings)
