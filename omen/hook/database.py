"""
Provider of preference storage to other hooks.  The mentions hook requires this resource to be
present.

Requirements:
    `Peewee <http://docs.peewee-orm.com>`_

    PyMySQL, for the ``mysql`` storage type (extra name: ``mysql``)

Config:
    type (str):
        ``sqlite`` (default) for an embedded database file, or ``mysql`` for a pooled connection
        to a MySQL server.
    prefix (str):
        Prefix for table names (``openmentions`` by default).
    file (str):
        SQLite database path (``omen.db`` by default).
    host (str):
        MySQL server hostname (``localhost`` by default).
    port (int):
        MySQL server port (``3306`` by default).
    database (str):
        MySQL schema name (``minecraft`` by default).
    user (str):
        MySQL username (``root`` by default).
    password (str):
        MySQL password.
    pool (int):
        Maximum pooled MySQL connections (``10`` by default).
    stale-timeout (int):
        Seconds before an idle pooled connection is recycled (``30`` by default).

The tables are created at startup if they don't already exist.

.. warning::
    Database requests block the calling thread.  The hook's own startup and shutdown run in the
    event loop's default executor, but other hooks are responsible for keeping their own queries
    off the loop.
"""

from asyncio import get_running_loop
import logging

import omen
from omen.core.storage import open_backend


log = logging.getLogger(__name__)


class DatabaseHook(omen.ResourceHook):
    """
    Hook that owns the process-wide :class:`.StorageBackend`, selected by config, and manages its
    lifecycle: connectivity is checked and the schema created when the hook starts, and pooled
    connections are released when it stops.

    Attributes:
        backend (.StorageBackend):
            Configured storage backend.
    """

    schema = omen.Schema({omen.Optional("type", "sqlite"): omen.Any("sqlite", "mysql"),
                          omen.Optional("prefix", "openmentions"): str,
                          omen.Optional("file", "omen.db"): str,
                          omen.Optional("host", "localhost"): str,
                          omen.Optional("port", 3306): int,
                          omen.Optional("database", "minecraft"): str,
                          omen.Optional("user", "root"): str,
                          omen.Optional("password"): omen.Nullable(str),
                          omen.Optional("pool", 10): int,
                          omen.Optional("stale-timeout", 30): int})

    def __init__(self, name, config, host, backend=None):
        super().__init__(name, config, host)
        self.backend = backend or open_backend(self.config)

    async def start(self):
        await super().start()
        loop = get_running_loop()
        log.debug("Loading storage: %r", self.backend)
        if not await loop.run_in_executor(None, self.backend.load):
            await loop.run_in_executor(None, self.backend.unload)
            raise omen.HookError("Storage unavailable: {!r}".format(self.backend))
        if not await loop.run_in_executor(None, self.backend.check_schema):
            await loop.run_in_executor(None, self.backend.unload)
            raise omen.HookError("Couldn't create tables: {!r}".format(self.backend))

    async def stop(self):
        await super().stop()
        log.debug("Unloading storage: %r", self.backend)
        await get_running_loop().run_in_executor(None, self.backend.unload)
