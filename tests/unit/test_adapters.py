"""Unit tests for the chat runtime adapters."""

import re
from unittest.mock import MagicMock

import pytest

from scenekit.adapters import InMemoryRobot, Message, Response, User
from scenekit.adapters.base import to_regex
from scenekit.exceptions import ConfigurationError
from scenekit.middleware import MiddlewareAction


class TestToRegex:
    """Tests for pattern compilation."""

    def test_plain_string_is_case_insensitive(self):
        assert to_regex("hello").search("Well HELLO there")

    def test_slash_form_keeps_flags(self):
        """Test /expr/flags strings are case-sensitive unless flagged."""
        assert to_regex("/left/").search("left")
        assert not to_regex("/left/").search("LEFT")
        assert to_regex("/left/i").search("LEFT")

    def test_compiled_pattern_passes_through(self):
        pattern = re.compile("x")

        assert to_regex(pattern) is pattern

    @pytest.mark.parametrize("pattern", ["(open", "/x/q", 42])
    def test_invalid_patterns(self, pattern):
        with pytest.raises(ConfigurationError):
            to_regex(pattern)


class TestInMemoryRobot:
    """Tests for InMemoryRobot."""

    @pytest.mark.asyncio
    async def test_hear_dispatch(self, robot, user):
        """Test hear listeners get a response with the match."""
        seen = []
        robot.hear(r"hello (\w+)", seen.append)

        handled = await robot.receive(Message(user=user, text="hello world", room="lobby"))

        assert handled is True
        assert seen[0].match.group(1) == "world"

    @pytest.mark.asyncio
    async def test_respond_requires_name_or_alias(self, user):
        """Test respond listeners match the bot's name or alias."""
        robot = InMemoryRobot(name="bot", alias="!")
        callback = MagicMock()
        robot.respond("^ping", callback)

        await robot.receive(Message(user=user, text="ping"))
        await robot.receive(Message(user=user, text="bot: ping"))
        await robot.receive(Message(user=user, text="! ping"))

        assert callback.call_count == 2

    @pytest.mark.asyncio
    async def test_listen_by_kind(self, robot):
        """Test listen delegates by kind and rejects unknown kinds."""
        assert robot.listen("hear", "x", MagicMock()).kind.value == "hear"
        assert robot.listen("respond", "x", MagicMock()).kind.value == "respond"

        with pytest.raises(ConfigurationError):
            robot.listen("whisper", "x", MagicMock())

    @pytest.mark.asyncio
    async def test_middleware_halt_blocks_listeners(self, robot, user):
        """Test a halting receive middleware stops dispatch."""
        callback = MagicMock()
        robot.hear("x", callback)
        robot.receive_middleware(lambda context: MiddlewareAction.HALT)

        assert await robot.receive(Message(user=user, text="x")) is False
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_finished_message_stops_dispatch(self, robot, user):
        """Test a listener finishing the message stops later listeners."""
        later = MagicMock()
        robot.hear("x", lambda res: res.message.finish())
        robot.hear("x", later)

        await robot.receive(Message(user=user, text="x"))

        later.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_listener_is_contained(self, robot, user):
        """Test one failing listener does not stop the next."""
        later = MagicMock()

        def broken(res):
            raise RuntimeError("boom")

        robot.hear("x", broken)
        robot.hear("x", later)

        await robot.receive(Message(user=user, text="x"))

        later.assert_called_once()

    @pytest.mark.asyncio
    async def test_delivery_kinds(self, robot):
        """Test send, reply and private delivery."""
        sender = User(id="u9", name="")
        res = Response(robot, Message(user=sender, text="hi", room="lobby"))

        await res.send("a", "b")
        await res.reply("c")
        await res.send_private("d")

        assert [sent.kind for sent in robot.sent] == ["send", "send", "reply", "private"]
        assert robot.texts() == ["a", "b", "@u9 c", "d"]
        assert robot.sent[-1].room == "u9"
        assert res.envelope.room == "lobby"
