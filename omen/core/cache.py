"""
Read-through/write-through caches of player preferences and ignore lists.

Reads check memory first, and on a miss load from the :class:`.StorageBackend` and remember the
result.  Writes always go to storage first, and only touch memory once storage has accepted them,
so the cache is never ahead of the durable copy.  If the process dies between the two, the worst
case is a stale entry that disappears when it expires.

Writes and miss-path loads for the same player are serialised by a per-player lock, so a load
that started before a write can't store its outdated result after the write has completed.
Different players never wait on each other.
"""

import logging
from threading import Lock

from cachetools import TTLCache

from .model import DisplayMode, PlayerPreferences, PreferenceMode, player_uuid
from .util import Clock, KeyLock


log = logging.getLogger(__name__)


class ExpiringCache:
    """
    Thread-safe, size-bounded mapping whose entries expire a fixed time after they were last
    written.  Once full, the least recently used entries are evicted to make room.

    Entries are spread over independently locked shards, so that concurrent access to different
    keys rarely contends.  Expiry and eviction are silent: the entry simply stops being returned.

    Attributes:
        capacity (int):
            Maximum number of entries across all shards.
        ttl (float):
            Seconds an entry is kept after being written.
    """

    def __init__(self, capacity=1000, ttl=300, clock=None, shards=16):
        if capacity < 1:
            raise ValueError("Cache capacity must be positive")
        self.capacity = capacity
        self.ttl = ttl
        timer = clock or Clock()
        count = min(shards, capacity)
        sizes = [capacity // count + (1 if i < capacity % count else 0) for i in range(count)]
        self._shards = [(Lock(), TTLCache(size, ttl, timer=timer)) for size in sizes]

    def _shard(self, key):
        return self._shards[hash(key) % len(self._shards)]

    def get(self, key):
        """
        Retrieve a live entry.

        Returns:
            Cached value, or ``None`` if missing or expired.
        """
        lock, cache = self._shard(key)
        with lock:
            return cache.get(key)

    def put(self, key, value):
        lock, cache = self._shard(key)
        with lock:
            cache[key] = value

    def update(self, key, func):
        """
        Atomically replace a live entry with ``func(current)``, restarting its expiry.  Missing
        entries are left missing.

        Returns:
            bool:
                ``True`` if an entry was present and updated.
        """
        lock, cache = self._shard(key)
        with lock:
            current = cache.get(key)
            if current is None:
                return False
            cache[key] = func(current)
            return True

    def invalidate(self, key):
        lock, cache = self._shard(key)
        with lock:
            return cache.pop(key, None) is not None

    def clear(self):
        for lock, cache in self._shards:
            with lock:
                cache.clear()

    def __contains__(self, key):
        return self.get(key) is not None

    def __len__(self):
        total = 0
        for lock, cache in self._shards:
            with lock:
                cache.expire()
                total += len(cache)
        return total

    def __repr__(self):
        return "<{}: {}/{} ttl={}>".format(self.__class__.__name__, len(self), self.capacity,
                                           self.ttl)


class PreferenceCache:
    """
    Cached view of :class:`.PlayerPreferences` records, keyed by player.

    Attributes:
        storage (.StorageBackend):
            Durable source of records.
    """

    def __init__(self, storage, capacity=1000, ttl=900, clock=None):
        self.storage = storage
        self._cache = ExpiringCache(capacity, ttl, clock)
        self._locks = KeyLock()

    def _load(self, player_id):
        # Caller must hold the player's lock.
        record = self._cache.get(player_id)
        if record:
            return record
        log.debug("Loading preferences for %s", player_id)
        record = self.storage.fetch_record(player_id)
        if record:
            self._cache.put(player_id, record)
        return record

    def get(self, player_id):
        """
        Retrieve a player's preferences, loading them from storage on a cache miss.

        Args:
            player_id (uuid.UUID):
                Player to look up.

        Returns:
            .PlayerPreferences:
                Current record, or ``None`` if the player has no record (or storage failed).
        """
        player_id = player_uuid(player_id)
        record = self._cache.get(player_id)
        if record:
            return record
        with self._locks(player_id):
            return self._load(player_id)

    def put(self, player_id, record):
        self._cache.put(player_uuid(player_id), record)

    def invalidate(self, player_id):
        self._cache.invalidate(player_uuid(player_id))

    def add(self, player_id, sound, display, preference):
        """
        Create a record in storage, and cache it once stored.

        Returns:
            .PlayerPreferences:
                New record, or ``None`` if storage rejected it.
        """
        record = PlayerPreferences(player_id, sound, display, preference)
        with self._locks(record.player_id):
            if not self.storage.add_record(record.player_id, sound, record.display,
                                           record.preference):
                return None
            self._cache.put(record.player_id, record)
            return record

    def ensure(self, player_id, sound, display, preference):
        """
        Fetch a player's record, creating it with the given defaults if it doesn't exist yet.

        Returns:
            (.PlayerPreferences, bool) tuple:
                Existing or new record (``None`` if storage failed), and ``True`` if it was
                created by this call.
        """
        player_id = player_uuid(player_id)
        with self._locks(player_id):
            record = self._load(player_id)
            if record:
                return record, False
            record = PlayerPreferences(player_id, sound, display, preference)
            if not self.storage.add_record(player_id, sound, record.display, record.preference):
                return None, False
            log.debug("Created preferences for %s", player_id)
            self._cache.put(player_id, record)
            return record, True

    def _update(self, player_id, write, **changes):
        player_id = player_uuid(player_id)
        with self._locks(player_id):
            if not write(player_id):
                return False
            # Only refresh what's already cached, the next read will load the stored row.
            self._cache.update(player_id, lambda record: record.replace(**changes))
            return True

    def update_sound(self, player_id, sound):
        """
        Change a player's notification sound.

        Returns:
            bool:
                ``True`` if storage accepted the change.
        """
        return self._update(player_id, lambda key: self.storage.update_sound(key, sound),
                            sound=sound)

    def update_display(self, player_id, display):
        display = DisplayMode.parse(display)
        return self._update(player_id, lambda key: self.storage.update_display(key, display),
                            display=display)

    def update_preference(self, player_id, preference):
        preference = PreferenceMode.parse(preference)
        return self._update(player_id,
                            lambda key: self.storage.update_preference(key, preference),
                            preference=preference)

    def update_all(self, player_id, sound, display, preference):
        display = DisplayMode.parse(display)
        preference = PreferenceMode.parse(preference)
        return self._update(player_id,
                            lambda key: self.storage.update_all(key, sound, display, preference),
                            sound=sound, display=display, preference=preference)

    def remove(self, player_id):
        """
        Delete a player's record from storage, then from the cache.

        Returns:
            bool:
                ``True`` if storage accepted the deletion.
        """
        player_id = player_uuid(player_id)
        with self._locks(player_id):
            if not self.storage.remove_record(player_id):
                return False
            self._cache.invalidate(player_id)
            return True

    def __len__(self):
        return len(self._cache)

    def __repr__(self):
        return "<{}: {!r}>".format(self.__class__.__name__, self._cache)


class IgnoreCache:
    """
    Cached view of the set of players each player has ignored.

    A miss loads the player's entire ignore set in one query, so later checks against other
    mentioners of the same player are answered from memory.

    Attributes:
        storage (.StorageBackend):
            Durable source of ignore relations.
    """

    def __init__(self, storage, capacity=1000, ttl=300, clock=None):
        self.storage = storage
        self._cache = ExpiringCache(capacity, ttl, clock)
        self._locks = KeyLock()

    def _load(self, player_id):
        # Caller must hold the player's lock.
        ignored = self._cache.get(player_id)
        if ignored is not None:
            return ignored
        log.debug("Loading ignores for %s", player_id)
        ignored = self.storage.fetch_ignored(player_id)
        if ignored is not None:
            self._cache.put(player_id, ignored)
        return ignored

    def ignored(self, player_id):
        """
        Retrieve everyone a player has ignored.

        Returns:
            uuid.UUID frozenset:
                Ignored players, empty if none or if storage failed.
        """
        player_id = player_uuid(player_id)
        ignored = self._cache.get(player_id)
        if ignored is None:
            with self._locks(player_id):
                ignored = self._load(player_id)
        return ignored or frozenset()

    def is_ignored(self, player_id, ignored_id):
        """
        Check if a player has ignored another.

        Args:
            player_id (uuid.UUID):
                Player who may have ignored someone.
            ignored_id (uuid.UUID):
                Player who may be ignored.

        Returns:
            bool:
                ``True`` if the relation exists.
        """
        return player_uuid(ignored_id) in self.ignored(player_id)

    def add(self, player_id, ignored_id):
        """
        Store an ignore relation, then add it to the cached set.  If no set is cached yet, the full
        set is loaded from storage, which now includes the new relation.

        Returns:
            bool:
                ``True`` if storage accepted the relation.
        """
        player_id = player_uuid(player_id)
        ignored_id = player_uuid(ignored_id)
        with self._locks(player_id):
            if not self.storage.add_ignore(player_id, ignored_id):
                return False
            if not self._cache.update(player_id, lambda ignored: ignored | {ignored_id}):
                self._load(player_id)
            return True

    def remove(self, player_id, ignored_id):
        """
        Delete an ignore relation from storage, then from the cached set if one is cached.

        Returns:
            bool:
                ``True`` if storage accepted the deletion.
        """
        player_id = player_uuid(player_id)
        ignored_id = player_uuid(ignored_id)
        with self._locks(player_id):
            if not self.storage.remove_ignore(player_id, ignored_id):
                return False
            self._cache.update(player_id, lambda ignored: ignored - {ignored_id})
            return True

    def invalidate(self, player_id):
        self._cache.invalidate(player_uuid(player_id))

    def __len__(self):
        return len(self._cache)

    def __repr__(self):
        return "<{}: {!r}>".format(self.__class__.__name__, self._cache)
