from collections import Counter
from uuid import uuid4

import pytest

from omen.core.model import PlayerPreferences


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeStorage:
    """In-memory backend that counts calls and can be told to fail."""

    def __init__(self):
        self.records = {}
        self.ignores = set()
        self.calls = Counter()
        self.failing = False

    def load(self):
        return not self.failing

    def unload(self):
        pass

    def check_schema(self):
        return not self.failing

    def add_record(self, player_id, sound, display, preference):
        self.calls["add_record"] += 1
        if self.failing or player_id in self.records:
            return False
        self.records[player_id] = PlayerPreferences(player_id, sound, display, preference)
        return True

    def _update(self, name, player_id, **changes):
        self.calls[name] += 1
        if self.failing or player_id not in self.records:
            return False
        self.records[player_id] = self.records[player_id].replace(**changes)
        return True

    def update_sound(self, player_id, sound):
        return self._update("update_sound", player_id, sound=sound)

    def update_display(self, player_id, display):
        return self._update("update_display", player_id, display=display)

    def update_preference(self, player_id, preference):
        return self._update("update_preference", player_id, preference=preference)

    def update_all(self, player_id, sound, display, preference):
        return self._update("update_all", player_id, sound=sound, display=display,
                            preference=preference)

    def remove_record(self, player_id):
        self.calls["remove_record"] += 1
        if self.failing:
            return False
        self.records.pop(player_id, None)
        return True

    def fetch_record(self, player_id):
        self.calls["fetch_record"] += 1
        if self.failing:
            return None
        return self.records.get(player_id)

    def add_ignore(self, player_id, ignored_id):
        self.calls["add_ignore"] += 1
        if self.failing:
            return False
        self.ignores.add((player_id, ignored_id))
        return True

    def remove_ignore(self, player_id, ignored_id):
        self.calls["remove_ignore"] += 1
        if self.failing:
            return False
        self.ignores.discard((player_id, ignored_id))
        return True

    def is_ignored(self, player_id, ignored_id):
        self.calls["is_ignored"] += 1
        return (player_id, ignored_id) in self.ignores

    def fetch_ignored(self, player_id):
        self.calls["fetch_ignored"] += 1
        if self.failing:
            return None
        return frozenset(ignored for player, ignored in self.ignores if player == player_id)


class RecordingNotifier:
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.sent = []

    def notify(self, target, mentioner, channels, sound):
        self.sent.append((target, mentioner, channels, sound))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def players():
    """A handful of fresh player IDs."""
    return [uuid4() for _ in range(4)]
