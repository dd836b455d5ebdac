"""Unit tests for ids and participant keys."""

import pytest

from scenekit.adapters import Message, User
from scenekit.config import SceneScope
from scenekit.keys import (
    DirectKey,
    RoomKey,
    UserKey,
    make_id,
    participant_key,
    path_id,
    slugify,
)


class TestIds:
    """Tests for id helpers."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Which Way?", "which_way"),
            ("fav-color", "fav_color"),
            ("  spaced  out ", "spaced_out"),
        ],
    )
    def test_slugify(self, text, expected):
        """Test text is reduced to snake_case."""
        assert slugify(text) == expected

    def test_make_id_with_key(self):
        """Test keyed ids are derived from the key."""
        assert make_id("scene", "Help Desk") == "scene_help_desk"

    def test_make_id_counts_per_name(self):
        """Test keyless ids are unique per name."""
        first = make_id("widget_test")
        second = make_id("widget_test")

        assert first == "widget_test_1"
        assert second == "widget_test_2"

    def test_path_id_prefers_key(self):
        """Test the key wins over the prompt."""
        assert path_id("dialogue_1", key="q1", prompt="Ready?") == "dialogue_1_q1"
        assert path_id("dialogue_1", prompt="Ready?") == "dialogue_1_ready"

    def test_path_id_unique_without_source(self):
        """Test paths with neither key nor prompt do not collide."""
        assert path_id("dialogue_x") != path_id("dialogue_x")


class TestParticipantKey:
    """Tests for participant keys."""

    def setup_method(self):
        self.message = Message(user=User(id="u1", name="jon"), text="hi", room="lobby")

    def test_user_scope(self):
        assert participant_key(SceneScope.USER, self.message) == UserKey("u1")

    def test_private_scope(self):
        assert participant_key(SceneScope.PRIVATE, self.message) == UserKey("u1")

    def test_room_scope(self):
        assert participant_key(SceneScope.ROOM, self.message) == RoomKey("lobby")

    def test_direct_scope(self):
        assert participant_key(SceneScope.DIRECT, self.message) == DirectKey("u1", "lobby")

    def test_keys_are_hashable_and_distinct(self):
        """Test keys of different kinds never collide."""
        keys = {UserKey("lobby"), RoomKey("lobby"), DirectKey("lobby", "lobby")}

        assert len(keys) == 3

    def test_str(self):
        assert str(DirectKey("u1", "lobby")) == "direct:u1@lobby"
        assert str(RoomKey("lobby")) == "room:lobby"
        assert str(UserKey("u1")) == "user:u1"


class TestUnicodeIds:
    """Tests for ids derived from non-Latin text."""

    def test_slugify_keeps_other_scripts(self):
        assert slugify("Вы уверены?") == "вы_уверены"
        assert slugify("続けますか？") == "続けますか"

    def test_distinct_prompts_get_distinct_path_ids(self):
        """Test prompts in other scripts do not collapse to one id."""
        first = path_id("dialogue_u", prompt="Вы уверены?")
        second = path_id("dialogue_u", prompt="Продолжить?")

        assert first == "dialogue_u_вы_уверены"
        assert second == "dialogue_u_продолжить"

    def test_prompt_without_letters_falls_back_to_counter(self):
        """Test punctuation-only prompts get unique ids, not a bare prefix."""
        first = path_id("dialogue_p", prompt="???")
        second = path_id("dialogue_p", prompt="!!!")

        assert first != second
        assert not first.endswith("_")
