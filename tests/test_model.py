from uuid import uuid4

import pytest

from omen.core.model import (DisplayMode, NotifyChannel, PlayerPreferences, PreferenceMode,
                             player_uuid)
from omen.core.util import KeyLock


# ── enums ───────────────────────────────────────────────────


def test_parse_is_case_insensitive():
    assert DisplayMode.parse("chat_and_sound") is DisplayMode.CHAT_AND_SOUND
    assert PreferenceMode.parse("NEVER") is PreferenceMode.NEVER
    assert PreferenceMode.parse(PreferenceMode.ALWAYS) is PreferenceMode.ALWAYS


def test_parse_unknown():
    with pytest.raises(ValueError):
        DisplayMode.parse("hologram")
    with pytest.raises(ValueError):
        PreferenceMode.parse("sometimes")


def test_display_channels():
    assert DisplayMode.ALL.channels == frozenset(NotifyChannel)
    assert DisplayMode.ONLY_SOUND.channels == {NotifyChannel.sound}
    assert DisplayMode.ACTIONBAR_AND_SOUND.channels == {NotifyChannel.actionbar,
                                                        NotifyChannel.sound}


def test_player_uuid():
    player = uuid4()
    assert player_uuid(player) is player
    assert player_uuid(str(player)) == player
    with pytest.raises(ValueError):
        player_uuid("Notch")


# ── PlayerPreferences ───────────────────────────────────────


def test_preferences_are_immutable():
    record = PlayerPreferences(uuid4(), "A", "all", "always")
    with pytest.raises(AttributeError):
        record.sound = "B"


def test_replace():
    player = uuid4()
    record = PlayerPreferences(player, "A", DisplayMode.ALL, PreferenceMode.ALWAYS)
    changed = record.replace(sound="B", preference="never")
    assert changed == PlayerPreferences(player, "B", DisplayMode.ALL, PreferenceMode.NEVER)
    assert record.sound == "A"
    assert changed != record


def test_equality():
    player = uuid4()
    assert (PlayerPreferences(str(player), "A", "all", "always") ==
            PlayerPreferences(player, "A", DisplayMode.ALL, PreferenceMode.ALWAYS))
    assert PlayerPreferences(player, "A", "all", "always") != object()


# ── KeyLock ─────────────────────────────────────────────────


def test_key_lock_discards_idle_locks():
    locks = KeyLock()
    with locks("a"):
        with locks("b"):
            assert len(locks) == 2
    assert len(locks) == 0
