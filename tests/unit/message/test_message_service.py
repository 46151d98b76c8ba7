"""Tests for chat message persistence."""

from uuid import uuid4

import pytest

from rideshare.core.modules.message.service import clean_content
from rideshare.errors import ValidationError


class TestCleanContent:
    """Tests for clean_content function."""

    def test_whitespace_trimmed(self):
        """Test that surrounding whitespace is removed."""
        assert clean_content("  see you at the gate \n") == "see you at the gate"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_rejected(self, content):
        """Test that blank messages raise ValidationError."""
        with pytest.raises(ValidationError, match="cannot be empty"):
            clean_content(content)

    @pytest.mark.parametrize("content", [None, 42, {"text": "hi"}])
    def test_non_string_rejected(self, content):
        """Test that non-string payloads raise ValidationError."""
        with pytest.raises(ValidationError, match="must be a string"):
            clean_content(content)

    def test_truncated_to_max_length(self):
        """Test that content longer than max_length is cut."""
        assert clean_content("abcdef", max_length=3) == "abc"

    def test_no_limit_by_default(self):
        """Test that ride messages are not truncated."""
        assert len(clean_content("x" * 2000)) == 2000


class TestQuickMatchMessages:
    """Tests for Quick Match message storage."""

    async def test_create_truncates(self, core):
        """Test that stored Quick Match messages never exceed 500 characters."""
        message = await core.services.message.create_quick_match_message(uuid4(), uuid4(), "Asha", "y" * 501)
        assert len(message.content) == 500

    async def test_recent_is_per_session(self, core):
        """Test that history only contains the requested session's messages."""
        messages = core.services.message
        first, second = uuid4(), uuid4()
        await messages.create_quick_match_message(first, uuid4(), "Asha", "one")
        await messages.create_quick_match_message(second, uuid4(), "Ravi", "two")

        recent = await messages.get_recent_quick_match_messages(first, 30)
        assert [m.content for m in recent] == ["one"]

    async def test_delete_returns_count(self, core):
        """Test that deleting a session's messages reports how many went."""
        messages = core.services.message
        session_id = uuid4()
        for content in ("a", "b", "c"):
            await messages.create_quick_match_message(session_id, uuid4(), "Asha", content)

        assert await messages.delete_quick_match_messages(session_id) == 3
        assert await messages.get_recent_quick_match_messages(session_id, 30) == []


class TestRideMessages:
    """Tests for ride message storage."""

    async def test_create_keeps_sender_name(self, core):
        """Test that ride messages cache the sender's real name."""
        ride_id, sender = uuid4(), uuid4()
        message = await core.services.message.create_ride_message(ride_id, sender, "Asha Rao", " hi ")
        assert message.sender_name == "Asha Rao"
        assert message.content == "hi"
        assert [m.id for m in await core.services.message.get_recent_ride_messages(ride_id, 50)] == [message.id]
