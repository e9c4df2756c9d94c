"""
Durable storage of player preferences and ignore relations, backed by
`Peewee <http://docs.peewee-orm.com>`_.

Two interchangeable backends share a single contract, defined by :class:`StorageBackend`:

* :class:`SQLiteBackend`, an embedded single-file database.
* :class:`MySQLBackend`, a networked database accessed through a connection pool (requires
  PyMySQL).

Both create the same two tables, named from a configurable prefix:

* ``<prefix>_players (PlayerId PK, Sound, Display, Preference)``
* ``<prefix>_ignores (PlayerId, IgnoredId, PK (PlayerId, IgnoredId))``

All calls are synchronous and may block on I/O.  Database failures are never raised to callers:
they're logged here, and reported as a negative result (``False`` for writes, ``None`` for reads).
The same applies to a backend that hasn't been loaded, or failed to load.

.. warning::
    Queries block the calling thread.  Async code should dispatch them to a worker pool, as
    :class:`.MentionsHook` does.
"""

import logging

from peewee import (CharField, CompositeKey, ImproperlyConfigured, Model, PeeweeException,
                    SqliteDatabase)
from playhouse.pool import PooledMySQLDatabase

try:
    from pymysql.constants import CLIENT
except ImportError:
    CLIENT = None

from .error import ConfigError
from .model import DisplayMode, PlayerPreferences, PreferenceMode, player_uuid


log = logging.getLogger(__name__)


def _make_models(db, prefix):
    # Table names depend on config, so each backend gets its own model classes.

    class PlayerRow(Model):
        player = CharField(max_length=36, primary_key=True, column_name="PlayerId")
        sound = CharField(max_length=200, column_name="Sound")
        display = CharField(max_length=32, column_name="Display")
        preference = CharField(max_length=32, column_name="Preference")

        class Meta:
            database = db
            table_name = "{}_players".format(prefix)

    class IgnoreRow(Model):
        player = CharField(max_length=36, column_name="PlayerId")
        ignored = CharField(max_length=36, column_name="IgnoredId")

        class Meta:
            database = db
            table_name = "{}_ignores".format(prefix)
            primary_key = CompositeKey("player", "ignored")

    return PlayerRow, IgnoreRow


class StorageBackend:
    """
    Base for all storage backends.  Subclasses only need to provide :meth:`_connect`, returning an
    unconnected Peewee database; all queries are shared.

    Attributes:
        prefix (str):
            Table name prefix.
        db (peewee.Database):
            Underlying database, or ``None`` before :meth:`load` is called.
    """

    def __init__(self, prefix="openmentions"):
        if not prefix or not prefix.replace("_", "").isalnum():
            raise ConfigError("Table prefix must be alphanumeric: {!r}".format(prefix))
        self.prefix = prefix
        self.db = None
        self._players = self._ignores = None

    def _connect(self):
        raise NotImplementedError

    def _ready(self):
        if self.db:
            return True
        log.error("Storage used before loading: %r", self)
        return False

    def load(self):
        """
        Create the database connection (or pool), and confirm that it can serve queries.

        Returns:
            bool:
                ``True`` if the database responded.
        """
        log.debug("Opening connection to database: %r", self)
        self.db = self._connect()
        self._players, self._ignores = _make_models(self.db, self.prefix)
        try:
            with self.db.connection_context():
                self.db.execute_sql("SELECT 1")
        except (PeeweeException, ImproperlyConfigured):
            log.exception("Failed to connect to database: %r", self)
            return False
        else:
            return True

    def unload(self):
        """
        Release any open connections.
        """
        if self.db:
            log.debug("Closing connection to database: %r", self)
            self.db.close()
            self.db = None

    def check_schema(self):
        """
        Create the players and ignores tables if they don't yet exist.  Safe to call repeatedly.

        Returns:
            bool:
                ``True`` if the tables are present.
        """
        if not self._ready():
            return False
        log.debug("Creating tables with prefix %r", self.prefix)
        try:
            with self.db.connection_context():
                self.db.create_tables([self._players, self._ignores], safe=True)
        except PeeweeException:
            log.exception("Failed to create tables")
            return False
        else:
            return True

    def _write(self, action, query):
        # Returns (succeeded, affected rows).
        if not self._ready():
            return False, 0
        try:
            with self.db.connection_context():
                result = query().execute()
        except PeeweeException:
            log.exception("Failed to %s", action)
            return False, 0
        else:
            return True, result

    def add_record(self, player_id, sound, display, preference):
        """
        Store a new preference record.  Fails if a record already exists for the player.

        Args:
            player_id (uuid.UUID):
                Player to create a record for.
            sound (str):
                Notification sound key.
            display (.DisplayMode):
                Notification channels.
            preference (.PreferenceMode):
                Notification policy.

        Returns:
            bool:
                ``True`` if the record was written.
        """
        Row = self._players
        fields = {Row.player: str(player_id), Row.sound: sound,
                  Row.display: DisplayMode.parse(display).name,
                  Row.preference: PreferenceMode.parse(preference).name}
        return self._write("add record for {}".format(player_id),
                           lambda: Row.insert(fields))[0]

    def _update(self, player_id, **fields):
        Row = self._players
        changes = {getattr(Row, name): value for name, value in fields.items()}
        ok, count = self._write("update record for {}".format(player_id),
                                lambda: Row.update(changes).where(Row.player == str(player_id)))
        if ok and not count:
            log.debug("No record to update for %s", player_id)
        return bool(count)

    def update_sound(self, player_id, sound):
        """
        Change the sound of an existing record.

        Returns:
            bool:
                ``True`` if a record matched, even if its values were unchanged, ``False`` if
                there was no such record or the query failed.
        """
        return self._update(player_id, sound=sound)

    def update_display(self, player_id, display):
        return self._update(player_id, display=DisplayMode.parse(display).name)

    def update_preference(self, player_id, preference):
        return self._update(player_id, preference=PreferenceMode.parse(preference).name)

    def update_all(self, player_id, sound, display, preference):
        return self._update(player_id, sound=sound, display=DisplayMode.parse(display).name,
                            preference=PreferenceMode.parse(preference).name)

    def remove_record(self, player_id):
        """
        Delete a player's preference record.

        Returns:
            bool:
                ``True`` if the query succeeded, whether or not a record existed.
        """
        Row = self._players
        return self._write("remove record for {}".format(player_id),
                           lambda: Row.delete().where(Row.player == str(player_id)))[0]

    def fetch_record(self, player_id):
        """
        Look up a single player's preference record.

        Returns:
            .PlayerPreferences:
                Stored record, or ``None`` if missing or unreadable.
        """
        if not self._ready():
            return None
        Row = self._players
        try:
            with self.db.connection_context():
                row = Row.get_or_none(Row.player == str(player_id))
        except PeeweeException:
            log.exception("Failed to fetch record for %s", player_id)
            return None
        if not row:
            return None
        try:
            return PlayerPreferences(row.player, row.sound, row.display, row.preference)
        except ValueError:
            log.exception("Malformed record for %s", player_id)
            return None

    def add_ignore(self, player_id, ignored_id):
        """
        Store an ignore relation.  Adding an existing relation is a successful no-op.

        Returns:
            bool:
                ``True`` if the relation is now stored.
        """
        Row = self._ignores
        fields = {Row.player: str(player_id), Row.ignored: str(ignored_id)}
        return self._write("add ignore {} -> {}".format(player_id, ignored_id),
                           lambda: Row.insert(fields).on_conflict_ignore())[0]

    def remove_ignore(self, player_id, ignored_id):
        Row = self._ignores
        query = (lambda: Row.delete().where((Row.player == str(player_id)) &
                                            (Row.ignored == str(ignored_id))))
        return self._write("remove ignore {} -> {}".format(player_id, ignored_id),
                           query)[0]

    def is_ignored(self, player_id, ignored_id):
        """
        Check for a single ignore relation directly against the database.

        Returns:
            bool:
                ``True`` if the relation exists, ``False`` if not or if the query failed.
        """
        if not self._ready():
            return False
        Row = self._ignores
        try:
            with self.db.connection_context():
                return (Row.select().where((Row.player == str(player_id)) &
                                           (Row.ignored == str(ignored_id))).exists())
        except PeeweeException:
            log.exception("Failed to check ignore %s -> %s", player_id, ignored_id)
            return False

    def fetch_ignored(self, player_id):
        """
        Load every player ignored by the given player in a single query.

        Returns:
            uuid.UUID frozenset:
                Ignored player identifiers, or ``None`` if the query failed.
        """
        if not self._ready():
            return None
        Row = self._ignores
        try:
            with self.db.connection_context():
                rows = list(Row.select(Row.ignored).where(Row.player == str(player_id)))
        except PeeweeException:
            log.exception("Failed to fetch ignores for %s", player_id)
            return None
        ignored = set()
        for row in rows:
            try:
                ignored.add(player_uuid(row.ignored))
            except ValueError:
                log.warning("Skipping malformed ignore %s -> %r", player_id, row.ignored)
        return frozenset(ignored)

    def __repr__(self):
        return "<{}: {!r}>".format(self.__class__.__name__, self.prefix)


class SQLiteBackend(StorageBackend):
    """
    Embedded backend, storing everything in a single SQLite database file.

    Attributes:
        path (str):
            Database file location.  Each query opens its own connection, so in-memory
            databases (``:memory:``) won't persist between calls.
    """

    def __init__(self, path, prefix="openmentions"):
        super().__init__(prefix)
        self.path = path

    def _connect(self):
        return SqliteDatabase(self.path, pragmas={"journal_mode": "wal"})

    def __repr__(self):
        return "<{}: {!r} {!r}>".format(self.__class__.__name__, self.path, self.prefix)


class MySQLBackend(StorageBackend):
    """
    Networked backend, using a pool of MySQL connections shared between threads.

    Attributes:
        database (str):
            Schema name on the server.
        pool_size (int):
            Maximum number of concurrent connections.
        stale_timeout (int):
            Seconds after which an idle connection is recycled.
    """

    def __init__(self, database, host="localhost", port=3306, user="root", password=None,
                 prefix="openmentions", pool_size=10, stale_timeout=30):
        super().__init__(prefix)
        self.database = database
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.stale_timeout = stale_timeout

    def _connect(self):
        if not CLIENT:
            raise ConfigError("MySQL storage requires PyMySQL")
        # Count matched rows, not changed ones, so rewriting an unchanged value still succeeds.
        return PooledMySQLDatabase(self.database, host=self.host, port=self.port, user=self.user,
                                   password=self.password, client_flag=CLIENT.FOUND_ROWS,
                                   max_connections=self.pool_size,
                                   stale_timeout=self.stale_timeout)

    def unload(self):
        if self.db:
            log.debug("Closing connection pool: %r", self)
            self.db.close_all()
        super().unload()

    def __repr__(self):
        return "<{}: {}@{}:{}/{} {!r}>".format(self.__class__.__name__, self.user, self.host,
                                               self.port, self.database, self.prefix)


def open_backend(config):
    """
    Create a backend from storage configuration, as validated by :class:`.DatabaseHook`.

    Args:
        config (dict):
            Storage settings, with ``type`` set to ``sqlite`` or ``mysql``.

    Returns:
        .StorageBackend:
            Unloaded backend instance.
    """
    if config["type"] == "sqlite":
        return SQLiteBackend(config["file"], config["prefix"])
    elif config["type"] == "mysql":
        return MySQLBackend(config["database"], config["host"], config["port"], config["user"],
                            config["password"], config["prefix"], config["pool"],
                            config["stale-timeout"])
    else:
        raise ConfigError("Unknown storage type: {!r}".format(config["type"]))
