"""
Unit tests for sftp_stream.dir module.

Tests cover:
- foreach with a consumer visits every entry once, in server order
- Early stop when the consumer returns False
- Lazy, restartable listings without a consumer
- Handle cleanup on every exit path
- entries/names helpers
"""

import pytest

from sftp_stream.dir import Dir, DirListing
from sftp_stream.entry import Entry
from sftp_stream.errors import DirError, FileError


@pytest.fixture
def root_with_five(transport):
    """Put exactly five entries in /srv, readme.txt among them."""
    transport.add_dir("/srv")
    transport.add_file("/srv/readme.txt", b"read me\n")
    transport.add_file("/srv/data.csv", b"a,b\n1,2\n")
    transport.add_dir("/srv/logs")
    transport.add_file("/srv/.hidden")
    transport.add_symlink("/srv/latest", "data.csv")
    return "/srv"


class TestDirForeach:
    """Tests for Dir.foreach."""

    def test_consumer_called_once_per_entry(self, session, root_with_five):
        seen = []
        result = session.dir().foreach(root_with_five, seen.append)

        assert result is None
        assert len(seen) == 5
        assert all(isinstance(entry, Entry) for entry in seen)
        assert "readme.txt" in [entry.name for entry in seen]

    def test_server_order(self, session, root_with_five):
        seen = []
        session.dir().foreach(root_with_five, lambda entry: seen.append(entry.name))
        assert seen == ["readme.txt", "data.csv", "logs", ".hidden", "latest"]

    def test_handle_closed_after_enumeration(self, session, transport, root_with_five):
        session.dir().foreach(root_with_five, lambda entry: None)
        assert transport.handles == {}
        assert transport.ops().count("close") == 1

    def test_consumer_returning_false_stops(self, session, transport, root_with_five):
        seen = []

        def consumer(entry):
            seen.append(entry)
            if len(seen) == 2:
                return False

        session.dir().foreach(root_with_five, consumer)
        assert len(seen) == 2
        assert transport.handles == {}

    def test_consumer_returning_falsy_non_false_continues(self, session, root_with_five):
        seen = []
        session.dir().foreach(root_with_five, lambda entry: seen.append(entry) or 0)
        assert len(seen) == 5

    def test_handle_closed_when_consumer_raises(self, session, transport, root_with_five):
        def consumer(entry):
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError):
            session.dir().foreach(root_with_five, consumer)
        assert transport.handles == {}

    def test_missing_directory(self, session, transport):
        with pytest.raises(FileError):
            session.dir().foreach("/nope", lambda entry: None)
        assert transport.handles == {}

    def test_file_is_not_a_directory(self, session):
        with pytest.raises(DirError):
            session.dir().foreach("/home/user/hello.txt", lambda entry: None)

    def test_each_alias(self, session, root_with_five):
        seen = []
        session.dir().each(root_with_five, seen.append)
        assert len(seen) == 5


class TestDirListing:
    """Tests for the lazy listing returned without a consumer."""

    def test_returns_listing_without_round_trip(self, session, transport, root_with_five):
        listing = session.dir().foreach(root_with_five)
        assert isinstance(listing, DirListing)
        assert "open_dir" not in transport.ops()

    def test_listing_is_restartable(self, session, transport, root_with_five):
        listing = session.dir().foreach(root_with_five)
        first = [entry.name for entry in listing]
        second = [entry.name for entry in listing]

        assert first == second
        assert len(first) == 5
        assert transport.ops().count("open_dir") == 2
        assert transport.handles == {}

    def test_breaking_out_closes_handle(self, session, transport, root_with_five):
        listing = session.dir().foreach(root_with_five)
        iterator = iter(listing)
        assert next(iterator).name == "readme.txt"
        assert len(transport.handles) == 1

        iterator.close()
        assert transport.handles == {}

    def test_for_loop_break_closes_handle(self, session, transport, root_with_five):
        for entry in session.dir().foreach(root_with_five):
            if entry.name == "logs":
                break
        # the abandoned generator is finalized when the loop drops it
        assert transport.handles == {}


class TestDirHelpers:
    """Tests for entries and names."""

    def test_entries(self, session, root_with_five):
        entries = session.dir().entries(root_with_five)
        assert len(entries) == 5
        assert entries[0].name == "readme.txt"
        assert entries[0].stats.size == len(b"read me\n")

    def test_names(self, session):
        assert Dir(session).names("/home/user") == ["hello.txt", "empty.txt", "docs", "link"]

    def test_entries_of_empty_directory(self, session):
        assert session.dir().entries("/home/user/docs") == []

    def test_entry_types(self, session, root_with_five):
        by_name = {entry.name: entry for entry in session.dir().entries(root_with_five)}
        assert bool(by_name["logs"].is_directory()) is True
        assert bool(by_name["readme.txt"].is_file()) is True
        assert bool(by_name["latest"].is_file()) is False
