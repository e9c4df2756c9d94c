import pytest

import omen
from omen.core.model import DisplayMode, PreferenceMode
from omen.core.util import OpenState
from omen.hook.database import DatabaseHook
from omen.hook.mentions import LogNotifier, MentionsHook


class SchemaFailure:
    """Backend that connects but can't create its tables."""

    def __init__(self):
        self.unloads = 0

    def load(self):
        return True

    def check_schema(self):
        return False

    def unload(self):
        self.unloads += 1


def _host(tmp_path, notifier, clock, **config):
    host = omen.Host()
    host.add_hook(DatabaseHook("database", {"file": str(tmp_path / "omen.db")}, host))
    host.add_hook(MentionsHook("mentions", config, host, notifier=notifier, clock=clock))
    host.loaded()
    return host


# ── host ────────────────────────────────────────────────────


def test_resources_are_keyed_by_class(tmp_path, notifier, clock):
    host = _host(tmp_path, notifier, clock)
    database = host["database"]
    assert host[DatabaseHook] is database
    assert host.resources == {DatabaseHook: database}
    assert list(host.plain_hooks) == ["mentions"]


def test_duplicate_names_are_rejected(tmp_path, notifier, clock):
    host = _host(tmp_path, notifier, clock)
    with pytest.raises(omen.ConfigError):
        host.add_hook(MentionsHook("mentions", {}, host))


def test_second_resource_is_rejected(tmp_path, notifier, clock):
    host = _host(tmp_path, notifier, clock)
    with pytest.raises(omen.ConfigError):
        host.add_hook(DatabaseHook("other", {"file": str(tmp_path / "other.db")}, host))


def test_remove_hook(tmp_path, notifier, clock):
    host = _host(tmp_path, notifier, clock)
    removed = host.remove_hook("database")
    assert isinstance(removed, DatabaseHook)
    assert host.resources == {}
    assert "database" not in host


def test_mentions_require_database(clock):
    host = omen.Host()
    host.add_hook(MentionsHook("mentions", {}, host, clock=clock))
    with pytest.raises(omen.HookError):
        host.loaded()


# ── config ──────────────────────────────────────────────────


def test_mentions_defaults():
    hook = MentionsHook("mentions", None, None)
    assert hook.config["cooldown"] == 3
    assert hook.config["cache"] == {"players": {"size": 1000, "ttl": 900},
                                    "ignores": {"size": 1000, "ttl": 300}}
    assert hook.default_display is DisplayMode.ALL
    assert hook.default_preference is PreferenceMode.ALWAYS
    assert isinstance(hook.notifier, LogNotifier)


def test_mentions_invalid_config():
    with pytest.raises(omen.ConfigError):
        MentionsHook("mentions", {"default-display": "hologram"}, None)
    with pytest.raises(omen.ConfigError):
        MentionsHook("mentions", {"workers": 0}, None)
    with pytest.raises(omen.Invalid):
        MentionsHook("mentions", {"cooldown": "soon"}, None)


def test_mentions_resolve_imports():
    hook = MentionsHook("mentions", {"notifier": "omen.hook.mentions.LogNotifier",
                                     "combat": "omen.core.engine.never_in_combat"}, None)
    assert isinstance(hook.notifier, LogNotifier)
    assert hook.in_combat is omen.never_in_combat


def test_database_invalid_type():
    with pytest.raises(omen.Invalid):
        DatabaseHook("database", {"type": "postgres"}, None)


# ── lifecycle ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_open_and_close(tmp_path, notifier, clock):
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        assert host["database"].state == OpenState.active
        assert host["mentions"].state == OpenState.active
        assert host["database"].backend.db is not None
    finally:
        await host.close()
    assert host["database"].backend.db is None
    assert host["mentions"].state == OpenState.inactive


@pytest.mark.asyncio
async def test_failed_storage_fails_hook(tmp_path, notifier, clock):
    host = omen.Host()
    host.add_hook(DatabaseHook("database", {"file": str(tmp_path / "no" / "such.db")}, host))
    host.loaded()
    await host.open()
    assert host["database"].state == OpenState.failed


@pytest.mark.asyncio
async def test_failed_schema_unloads_backend():
    backend = SchemaFailure()
    host = omen.Host()
    host.add_hook(DatabaseHook("database", {}, host, backend=backend))
    host.loaded()
    await host.open()
    assert host["database"].state == OpenState.failed
    assert backend.unloads == 1


@pytest.mark.asyncio
async def test_failed_storage_fails_mentions(tmp_path, notifier, clock, players):
    host = omen.Host()
    host.add_hook(DatabaseHook("database", {"file": str(tmp_path / "no" / "such.db")}, host))
    host.add_hook(MentionsHook("mentions", {}, host, notifier=notifier, clock=clock))
    host.loaded()
    await host.open()
    assert host["database"].state == OpenState.failed
    assert host["mentions"].state == OpenState.failed
    with pytest.raises(omen.HookError):
        await host["mentions"].mention(players[0], players[1])
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_calls_before_start_are_rejected(tmp_path, notifier, clock, players):
    host = _host(tmp_path, notifier, clock)
    with pytest.raises(omen.HookError):
        await host["mentions"].mention(players[0], players[1])


# ── mentions ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_mention_flow(tmp_path, notifier, clock, players):
    target, mentioner = players[:2]
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        mentions = host["mentions"]
        assert not await mentions.mention(target, mentioner)
        record = await mentions.join(target)
        assert record.sound == "ENTITY_PLAYER_LEVELUP"
        assert await mentions.mention(str(target), str(mentioner))
        assert len(notifier.sent) == 1
        assert not await mentions.mention(target, mentioner)
        clock.advance(3)
        assert await mentions.mention(target, mentioner)
        assert len(notifier.sent) == 2
    finally:
        await host.close()


@pytest.mark.asyncio
async def test_join_keeps_existing_preferences(tmp_path, notifier, clock, players):
    player = players[0]
    host = _host(tmp_path, notifier, clock, **{"default-preference": "never"})
    await host.open()
    try:
        mentions = host["mentions"]
        first = await mentions.join(player)
        assert first.preference is PreferenceMode.NEVER
        assert await mentions.set_preference(player, "always")
        assert await mentions.set_sound(player, "BLOCK_NOTE_BLOCK_BELL")
        assert await mentions.set_display(player, "chat_and_sound")
        again = await mentions.join(player)
        assert again.preference is PreferenceMode.ALWAYS
        assert again.sound == "BLOCK_NOTE_BLOCK_BELL"
        assert again.display is DisplayMode.CHAT_AND_SOUND
    finally:
        await host.close()


@pytest.mark.asyncio
async def test_settings_survive_restart(tmp_path, notifier, clock, players):
    player, other = players[:2]
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        mentions = host["mentions"]
        await mentions.join(player)
        assert await mentions.set_all(player, "X", "only_actionbar", "never_in_combat")
        assert await mentions.ignore(player, other)
    finally:
        await host.close()
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        mentions = host["mentions"]
        record = await mentions.get(player)
        assert (record.sound, record.display, record.preference) == (
            "X", DisplayMode.ONLY_ACTIONBAR, PreferenceMode.NEVER_IN_COMBAT)
        assert await mentions.ignored(player) == frozenset({other})
    finally:
        await host.close()


@pytest.mark.asyncio
async def test_ignore_and_unignore(tmp_path, notifier, clock, players):
    target, mentioner = players[:2]
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        mentions = host["mentions"]
        await mentions.join(target)
        assert await mentions.ignore(target, mentioner)
        assert await mentions.mention(target, mentioner)
        assert notifier.sent == []
        assert await mentions.unignore(target, mentioner)
        assert await mentions.ignored(target) == frozenset()
        assert await mentions.mention(target, mentioner)
        assert len(notifier.sent) == 1
    finally:
        await host.close()


@pytest.mark.asyncio
async def test_forget(tmp_path, notifier, clock, players):
    player = players[0]
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        mentions = host["mentions"]
        await mentions.join(player)
        assert await mentions.forget(player)
        assert await mentions.get(player) is None
        assert not await mentions.set_sound(player, "X")
    finally:
        await host.close()


@pytest.mark.asyncio
async def test_quit_marks_cooldown(tmp_path, notifier, clock, players):
    target, mentioner = players[:2]
    host = _host(tmp_path, notifier, clock)
    await host.open()
    try:
        mentions = host["mentions"]
        await mentions.join(target)
        await mentions.mention(target, mentioner)
        await mentions.quit(mentioner)
        assert mentions.cooldowns.is_marked_for_removal(mentioner)
        clock.advance(5)
        assert mentions.cooldowns.sweep() == 1
        assert len(mentions.cooldowns) == 0
    finally:
        await host.close()
