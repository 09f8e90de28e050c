"""Tests for the in-memory session store."""

import pytest
from unittest.mock import Mock

from cryptosentinel.agents.session_store import InMemorySessionStore
from cryptosentinel.exceptions import SessionNotFoundError


class TestInMemorySessionStore:
    """Create, look up and drop sessions."""

    def setup_method(self):
        self.store = InMemorySessionStore()

    def test_create_and_get(self):
        bot = object()
        self.store.create("s1", bot)

        assert self.store.get("s1") is bot
        assert "s1" in self.store
        assert len(self.store) == 1

    def test_missing_session(self):
        assert self.store.get("nope") is None
        with pytest.raises(SessionNotFoundError):
            self.store.require("nope")

    def test_get_or_create_builds_once(self):
        factory = Mock(side_effect=lambda: object())

        first = self.store.get_or_create("s1", factory)
        second = self.store.get_or_create("s1", factory)

        assert first is second
        factory.assert_called_once()

    def test_delete(self):
        self.store.create("s1", object())

        assert self.store.delete("s1") is True
        assert self.store.delete("s1") is False
        assert "s1" not in self.store

    def test_create_replaces(self):
        self.store.create("s1", "old")
        self.store.create("s1", "new")

        assert self.store.require("s1") == "new"
        assert len(self.store) == 1
