"""
Mention notifications, honouring each player's preferences, ignore list and a per-mentioner
cooldown.

Dependencies:
    :class:`.DatabaseHook`

Config:
    cooldown (int):
        Seconds before a player's mentions can notify anyone again (``3`` by default).  Values
        below 1 disable the cooldown.
    default-sound (str):
        Sound key given to new players (``ENTITY_PLAYER_LEVELUP`` by default).
    default-display (str):
        Display mode given to new players (``ALL`` by default).
    default-preference (str):
        Preference mode given to new players (``ALWAYS`` by default).
    workers (int):
        Size of the thread pool used for blocking storage calls (``4`` by default).
    sweep-interval (int):
        Seconds between clean-ups of lapsed cooldowns (``60`` by default).
    cache (dict):
        Sizes and lifetimes of the preference (``players``) and ignore list (``ignores``) caches,
        each as a ``size`` (``1000`` by default) and ``ttl`` in seconds (``900`` for preferences,
        ``300`` for ignore lists, by default).
    notifier (str):
        Dotted import path of the notifier class or object that delivers notifications.  Defaults
        to logging them.
    combat (str):
        Dotted import path of a function, taking a player ID and returning ``True`` if that player
        is in combat.  Defaults to nobody ever being in combat.

The chat side of the application calls :meth:`MentionsHook.mention` for each player referenced
in a message.  A ``False`` result means the mention wasn't handled (the target has no preferences
yet, or the sender is on cooldown), and shouldn't be highlighted.  Players should be passed to
:meth:`MentionsHook.join` when they connect, to create their preferences on first sight, and to
:meth:`MentionsHook.quit` when they leave.

Storage calls block, so the coroutine methods run them on the hook's own thread pool.  Code that
already manages its own threads can call :attr:`MentionsHook.engine` and the caches directly.
"""

from asyncio import CancelledError, ensure_future, get_running_loop, sleep
from concurrent.futures import ThreadPoolExecutor
from functools import partial
import logging

import omen
from omen.core.cache import IgnoreCache, PreferenceCache
from omen.core.cooldown import CooldownTracker
from omen.core.engine import MentionEngine
from omen.core.model import DisplayMode, PreferenceMode, player_uuid
from omen.hook.database import DatabaseHook


log = logging.getLogger(__name__)


class LogNotifier:
    """
    Fallback notifier that only records each notification in the log.
    """

    def notify(self, target, mentioner, channels, sound):
        log.info("Notifying %s of mention by %s via %s (sound: %r)", target, mentioner,
                 ", ".join(sorted(channel.name for channel in channels)), sound)


def _resolve_notifier(path):
    notifier = omen.resolve_import(path)
    return notifier() if isinstance(notifier, type) else notifier


class MentionsHook(omen.Hook):
    """
    Hook owning the mention caches, cooldowns and decision engine.

    Attributes:
        preferences (.PreferenceCache):
            Cached player preferences.
        ignores (.IgnoreCache):
            Cached player ignore lists.
        cooldowns (.CooldownTracker):
            Mentioner cooldown state.
        engine (.MentionEngine):
            Decision engine built over the above.
    """

    _players = {omen.Optional("size", 1000): int,
                omen.Optional("ttl", 900): int}

    _ignores = {omen.Optional("size", 1000): int,
                omen.Optional("ttl", 300): int}

    schema = omen.Schema({omen.Optional("cooldown", 3): int,
                          omen.Optional("default-sound", "ENTITY_PLAYER_LEVELUP"): str,
                          omen.Optional("default-display", "ALL"): str,
                          omen.Optional("default-preference", "ALWAYS"): str,
                          omen.Optional("workers", 4): int,
                          omen.Optional("sweep-interval", 60): int,
                          omen.Optional("cache", dict): {omen.Optional("players", dict): _players,
                                                         omen.Optional("ignores", dict): _ignores},
                          omen.Optional("notifier"): omen.Nullable(str),
                          omen.Optional("combat"): omen.Nullable(str)})

    def __init__(self, name, config, host, storage=None, notifier=None, in_combat=None,
                 clock=None):
        super().__init__(name, config, host)
        try:
            self.default_display = DisplayMode.parse(self.config["default-display"])
            self.default_preference = PreferenceMode.parse(self.config["default-preference"])
        except ValueError as e:
            raise omen.ConfigError(str(e)) from None
        if self.config["workers"] < 1:
            raise omen.ConfigError("Worker count must be positive")
        elif self.config["sweep-interval"] < 1:
            raise omen.ConfigError("Sweep interval must be positive")
        if notifier is None and self.config["notifier"]:
            notifier = _resolve_notifier(self.config["notifier"])
        if in_combat is None and self.config["combat"]:
            in_combat = omen.resolve_import(self.config["combat"])
        self.notifier = notifier or LogNotifier()
        self.in_combat = in_combat
        self.clock = clock or omen.Clock()
        self.preferences = self.ignores = self.cooldowns = self.engine = None
        self._database = None
        self._pool = None
        self._sweeper = None
        if storage is not None:
            self._build(storage)

    def _build(self, storage):
        caches = self.config["cache"]
        self.preferences = PreferenceCache(storage, caches["players"]["size"],
                                           caches["players"]["ttl"], self.clock)
        self.ignores = IgnoreCache(storage, caches["ignores"]["size"],
                                   caches["ignores"]["ttl"], self.clock)
        self.cooldowns = CooldownTracker(self.clock)
        self.engine = MentionEngine(self.preferences, self.ignores, self.cooldowns, self.notifier,
                                    self.config["cooldown"], self.in_combat, self.clock)

    def on_load(self):
        if self.engine:
            return
        try:
            self._database = self.host.resources[DatabaseHook]
        except KeyError:
            raise omen.HookError("Mentions hook requires a database hook") from None
        self._build(self._database.backend)

    async def start(self):
        await super().start()
        if not self.engine:
            raise omen.HookError("Mentions hook not loaded")
        elif self._database and self._database.state != omen.OpenState.active:
            raise omen.HookError("Database hook not running: {!r}".format(self._database.name))
        self._pool = ThreadPoolExecutor(self.config["workers"], thread_name_prefix=self.name)
        self._sweeper = ensure_future(self._sweep())

    async def stop(self):
        await super().stop()
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except CancelledError:
                pass
            self._sweeper = None
        if self._pool:
            log.debug("Shutting down worker pool")
            self._pool.shutdown(wait=True)
            self._pool = None

    async def _sweep(self):
        interval = self.config["sweep-interval"]
        while True:
            await sleep(interval)
            self.cooldowns.sweep()

    async def _run(self, func, *args):
        if not self._pool:
            raise omen.HookError("Mentions hook not started")
        return await get_running_loop().run_in_executor(self._pool, partial(func, *args))

    async def mention(self, target, mentioner):
        """
        Handle one player mentioning another, sending a notification if appropriate.

        Args:
            target (uuid.UUID):
                Mentioned player.
            mentioner (uuid.UUID):
                Player who made the mention.

        Returns:
            bool:
                ``True`` if the mention was handled, even if no notification was sent.
        """
        return await self._run(self.engine.mention_player, player_uuid(target),
                               player_uuid(mentioner))

    async def join(self, player_id):
        """
        Load a connecting player's preferences, creating them from the configured defaults on
        their first visit.

        Returns:
            .PlayerPreferences:
                Player's record, or ``None`` if storage failed.
        """
        record, created = await self._run(self.preferences.ensure, player_uuid(player_id),
                                          self.config["default-sound"], self.default_display,
                                          self.default_preference)
        if created:
            log.info("Created default preferences for %s", record.player_id)
        return record

    async def quit(self, player_id):
        """
        Release a disconnecting player's cooldown once it lapses.
        """
        self.cooldowns.release(player_uuid(player_id))

    async def get(self, player_id):
        return await self._run(self.preferences.get, player_uuid(player_id))

    async def set_sound(self, player_id, sound):
        return await self._run(self.preferences.update_sound, player_uuid(player_id), sound)

    async def set_display(self, player_id, display):
        return await self._run(self.preferences.update_display, player_uuid(player_id),
                               DisplayMode.parse(display))

    async def set_preference(self, player_id, preference):
        return await self._run(self.preferences.update_preference, player_uuid(player_id),
                               PreferenceMode.parse(preference))

    async def set_all(self, player_id, sound, display, preference):
        """
        Replace all of a player's preferences at once.

        Returns:
            bool:
                ``True`` if the player has a record and storage accepted the change.
        """
        return await self._run(self.preferences.update_all, player_uuid(player_id), sound,
                               DisplayMode.parse(display), PreferenceMode.parse(preference))

    async def forget(self, player_id):
        """
        Delete a player's preferences.  They'll be recreated from defaults on their next join.
        """
        return await self._run(self.preferences.remove, player_uuid(player_id))

    async def ignore(self, player_id, ignored_id):
        return await self._run(self.ignores.add, player_uuid(player_id), player_uuid(ignored_id))

    async def unignore(self, player_id, ignored_id):
        return await self._run(self.ignores.remove, player_uuid(player_id),
                               player_uuid(ignored_id))

    async def ignored(self, player_id):
        """
        Returns:
            uuid.UUID frozenset:
                Everyone the player has ignored.
        """
        return await self._run(self.ignores.ignored, player_uuid(player_id))
