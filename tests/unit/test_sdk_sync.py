"""
Unit tests for ClientSyncAdapter.

Tests cover:
- Snapshot loading
- Pending entries and their confirmation or rollback
- Deduplication between mutation replies and live messages
"""

import pytest

from sdk.chatrelay_sdk import ChatMessage, ClientSyncAdapter, PendingMessage


def make_message(id: int, payload: str = "hi", sender: str = "Alice") -> ChatMessage:
    """Helper to create a confirmed message."""
    return ChatMessage(id=id, sender=sender, payload=payload, is_image=False)


class TestClientSyncAdapter:
    """Tests for ClientSyncAdapter."""

    @pytest.fixture
    def sync(self):
        return ClientSyncAdapter()

    def test_load_snapshot(self, sync):
        """Snapshot messages appear in id order."""
        sync.load_snapshot([make_message(2), make_message(1)])

        assert [m.id for m in sync.messages] == [1, 2]
        assert sync.last_id == 2

    def test_pending_shown_after_confirmed(self, sync):
        """Pending entries sort after confirmed messages."""
        sync.load_snapshot([make_message(1)])
        pending = sync.add_pending("Alice", "draft")

        assert sync.messages == [make_message(1), pending]
        assert isinstance(pending, PendingMessage)

    def test_pending_ids_are_unique(self, sync):
        """Each pending entry gets its own local id."""
        a = sync.add_pending("Alice", "one")
        b = sync.add_pending("Alice", "one")

        assert a.local_id != b.local_id

    def test_confirm_overwrites_pending(self, sync):
        """The server record replaces the speculative entry."""
        pending = sync.add_pending("Alice", "hi")
        stored = make_message(7)

        sync.confirm(pending.local_id, stored)

        assert sync.messages == [stored]
        assert sync.pending == []

    def test_reject_removes_pending(self, sync):
        """A refused send disappears from the view."""
        sync.load_snapshot([make_message(1)])
        pending = sync.add_pending("Alice", "")

        assert sync.reject(pending.local_id) == pending
        assert sync.messages == [make_message(1)]
        assert sync.reject(pending.local_id) is None

    def test_live_echo_before_confirm(self, sync):
        """A live echo followed by the mutation reply leaves one copy."""
        pending = sync.add_pending("Alice", "hi")
        stored = make_message(3)

        assert sync.apply_live(stored) is True
        sync.confirm(pending.local_id, stored)

        assert sync.messages == [stored]

    def test_live_echo_after_confirm(self, sync):
        """A live echo of an already-confirmed message is ignored."""
        pending = sync.add_pending("Alice", "hi")
        stored = make_message(3)
        sync.confirm(pending.local_id, stored)

        assert sync.apply_live(stored) is False
        assert sync.messages == [stored]

    def test_live_messages_from_others(self, sync):
        """Live messages from other senders merge in id order."""
        sync.load_snapshot([make_message(1)])
        sync.apply_live(make_message(3, sender="Bob"))
        sync.apply_live(make_message(2, sender="Carol"))

        assert [m.id for m in sync.messages] == [1, 2, 3]
