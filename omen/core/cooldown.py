import logging
from threading import Lock

from .model import player_uuid
from .util import Clock


log = logging.getLogger(__name__)


class CooldownTracker:
    """
    In-memory record of when each mentioning player may next trigger a notification.

    Lapsed entries aren't removed inline.  Instead they're marked for removal (when found lapsed
    by :meth:`is_on_cooldown`, or when the player leaves), and a periodic :meth:`sweep` clears
    marked entries that are confirmed to have expired.

    Attributes:
        clock (callable):
            Source of the current time, in seconds.
    """

    def __init__(self, clock=None, shards=16):
        self.clock = clock or Clock()
        self._shards = [(Lock(), {}, set()) for _ in range(shards)]

    def _shard(self, player_id):
        return self._shards[hash(player_id) % len(self._shards)]

    def set_cooldown(self, player_id, expiry):
        """
        Throttle a player until the given time, replacing any existing cooldown.

        Args:
            player_id (uuid.UUID):
                Mentioning player.
            expiry (float):
                Clock time at which the cooldown ends.
        """
        player_id = player_uuid(player_id)
        lock, entries, _ = self._shard(player_id)
        with lock:
            entries[player_id] = expiry

    def try_acquire(self, player_id, expiry):
        """
        Start a cooldown only if the player isn't already on one, as a single step.  Of several
        threads racing for the same player, exactly one succeeds.

        Args:
            player_id (uuid.UUID):
                Mentioning player.
            expiry (float):
                Clock time at which the new cooldown ends.

        Returns:
            bool:
                ``True`` if the cooldown was started, ``False`` if one was still running.
        """
        player_id = player_uuid(player_id)
        lock, entries, _ = self._shard(player_id)
        with lock:
            current = entries.get(player_id)
            if current is not None and self.clock() < current:
                return False
            entries[player_id] = expiry
            return True

    def expiry(self, player_id):
        """
        Returns:
            float:
                Clock time of the player's current cooldown end, or ``None`` if they have none.
        """
        player_id = player_uuid(player_id)
        lock, entries, _ = self._shard(player_id)
        with lock:
            return entries.get(player_id)

    def is_on_cooldown(self, player_id):
        """
        Check if a player is currently throttled.  A lapsed entry is marked for removal.

        Returns:
            bool:
                ``True`` if the current time is strictly before the player's cooldown expiry.
        """
        player_id = player_uuid(player_id)
        lock, entries, marked = self._shard(player_id)
        with lock:
            expiry = entries.get(player_id)
            if expiry is None:
                return False
            elif self.clock() < expiry:
                return True
            marked.add(player_id)
            return False

    def remove_cooldown(self, player_id):
        player_id = player_uuid(player_id)
        lock, entries, _ = self._shard(player_id)
        with lock:
            entries.pop(player_id, None)

    def mark_for_removal(self, player_id):
        player_id = player_uuid(player_id)
        lock, _, marked = self._shard(player_id)
        with lock:
            marked.add(player_id)

    def release(self, player_id):
        """
        Let go of a departing player.  Their entry is kept until it lapses, then cleared by the
        next :meth:`sweep`.
        """
        self.mark_for_removal(player_id)

    def unmark_for_removal(self, player_id):
        player_id = player_uuid(player_id)
        lock, _, marked = self._shard(player_id)
        with lock:
            marked.discard(player_id)

    def is_marked_for_removal(self, player_id):
        player_id = player_uuid(player_id)
        lock, _, marked = self._shard(player_id)
        with lock:
            return player_id in marked

    def marked(self):
        """
        Returns:
            uuid.UUID set:
                Copy of all players currently marked for removal.
        """
        found = set()
        for lock, _, marked in self._shards:
            with lock:
                found.update(marked)
        return found

    def sweep(self):
        """
        Clear every marked entry whose cooldown has ended.  Marked players still on cooldown (e.g.
        a fresh cooldown set after marking) stay marked for a later sweep.

        Returns:
            int:
                Number of entries cleared.
        """
        count = 0
        for lock, entries, marked in self._shards:
            with lock:
                if not marked:
                    continue
                now = self.clock()
                for player_id in list(marked):
                    expiry = entries.get(player_id)
                    if expiry is not None and now < expiry:
                        continue
                    entries.pop(player_id, None)
                    marked.discard(player_id)
                    count += 1
        if count:
            log.debug("Swept %d expired cooldowns", count)
        return count

    def __len__(self):
        total = 0
        for lock, entries, _ in self._shards:
            with lock:
                total += len(entries)
        return total

    def __repr__(self):
        return "<{}: {} entries>".format(self.__class__.__name__, len(self))
