from collections import defaultdict
from enum import Enum
from importlib import import_module
from threading import Lock
import time

from .schema import Schema


def resolve_import(path):
    """
    Take the qualified name of a Python class or function, and return the physical object.

    Args:
        path (str):
            Dotted Python name, e.g. ``<module path>.<class name>``.

    Returns:
        Object imported from module.
    """
    module, name = path.rsplit(".", 1)
    return getattr(import_module(module), name)


def pretty_str(cls):
    """
    Class decorator to provide a default :meth:`__str__` based on the contents of :attr:`__dict__`.
    """

    def nest_str(obj):
        if isinstance(obj, dict):
            return "{{...{}...}}".format(len(obj)) if obj else "{}"
        elif isinstance(obj, (list, set, frozenset)):
            return "[...{}...]".format(len(obj)) if obj else "[]"
        else:
            return str(obj)

    def __str__(self):
        if hasattr(self, "__dict__"):
            data = self.__dict__
        elif hasattr(self, "__slots__"):
            data = {attr: getattr(self, attr) for attr in self.__slots__}
        else:
            raise TypeError("No __dict__ or __slots__ to collect attributes")
        args = "\n".join("{}: {}".format(k, nest_str(v).replace("\n", "\n" + " " * (len(k) + 2)))
                         for k, v in data.items() if not k.startswith("_"))
        return "[{}]\n{}".format(self.__class__.__name__, args)

    cls.__str__ = __str__
    return cls


class Clock:
    """
    Source of the current time, in seconds, for anything that expires.

    Calling an instance returns the time from :func:`time.monotonic`.  Tests substitute any other
    zero-argument callable returning a float.
    """

    __slots__ = ()

    def __call__(self):
        return time.monotonic()

    def __repr__(self):
        return "<{}>".format(self.__class__.__name__)


class KeyLock:
    """
    Collection of mutexes, one per key, created on demand and discarded once nobody holds or waits
    on them.  Two threads locking different keys never block each other.

    .. code-block:: python

        locks = KeyLock()
        with locks(player_id):
            ...
    """

    __slots__ = ("_guard", "_locks", "_users")

    def __init__(self):
        self._guard = Lock()
        self._locks = {}
        self._users = defaultdict(int)

    def __call__(self, key):
        return _KeyLockContext(self, key)

    def _acquire(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if not lock:
                lock = self._locks[key] = Lock()
            self._users[key] += 1
        lock.acquire()

    def _release(self, key):
        with self._guard:
            self._locks[key].release()
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self):
        return len(self._locks)

    def __repr__(self):
        return "<{}: {} held>".format(self.__class__.__name__, len(self._locks))


class _KeyLockContext:

    __slots__ = ("_parent", "_key")

    def __init__(self, parent, key):
        self._parent = parent
        self._key = key

    def __enter__(self):
        self._parent._acquire(self._key)
        return self

    def __exit__(self, *exc):
        self._parent._release(self._key)


class OpenState(Enum):
    """
    Readiness status for instances of :class:`Openable`.

    Attributes:
        disabled:
            Not currently in use, and won't be started by the host.
        inactive:
            Hasn't been started yet.
        starting:
            Currently starting up (during :meth:`.Openable.start`).
        active:
            Currently running.
        stopping:
            Currently closing down (during :meth:`.Openable.stop`).
        failed:
            Exception occurred during starting or stopping phases.
    """
    disabled = -1
    inactive = 0
    starting = 1
    active = 2
    stopping = 3
    failed = 4


class Configurable:
    """
    Superclass for objects managed by a :class:`.Host` and created using configuration.

    Attributes:
        schema (.Schema):
            Structure of the config expected by this configurable.  If not customised by the
            subclass, it defaults to ``dict`` (that is, any :class:`dict` structure is valid).

            It may also be set to :data:`None`, to declare that no configuration is accepted.
        name (str):
            User-provided, unique name of the hook, used for config references.
        config (dict):
            Validated copy of the user-provided configuration, with defaults filled in.
        host (.Host):
            Controlling host instance, providing access to other hooks.
    """

    schema = Schema(dict)

    def __init__(self, name, config, host):
        super().__init__()
        self.name = name
        self.host = host
        if self.schema:
            self.config = self.schema(config or {})
        elif config:
            raise TypeError("{} doesn't accept configuration".format(self.__class__.__name__))
        else:
            self.config = None


class Openable:
    """
    Abstract class to provide open and close hooks.  Subclasses should implement :meth:`start`
    and :meth:`stop`, whilst users should make use of :meth:`open` and :meth:`close`.

    Attributes:
        state (.OpenState):
            Current status of this resource.
    """

    state = property(lambda self: self._state)

    def __init__(self):
        super().__init__()
        self._state = OpenState.inactive

    async def open(self):
        """
        Open this resource ready for use.  Does nothing if already open, but raises
        :class:`RuntimeError` if currently changing state.
        """
        if self._state == OpenState.active:
            return
        elif self._state not in (OpenState.inactive, OpenState.failed):
            raise RuntimeError("Can't open when already opening/closing")
        self._state = OpenState.starting
        try:
            await self.start()
        except Exception:
            self._state = OpenState.failed
            raise
        else:
            self._state = OpenState.active

    async def start(self):
        """
        Perform any underlying operations needed to ready this resource for use, such as opening
        connections to a database.
        """

    async def close(self):
        """
        Close this resource after it's used.  Does nothing if already closed, but raises
        :class:`RuntimeError` if currently changing state.
        """
        if self._state == OpenState.inactive:
            return
        elif self._state != OpenState.active:
            raise RuntimeError("Can't close when already opening/closing")
        self._state = OpenState.stopping
        try:
            await self.stop()
        except Exception:
            self._state = OpenState.failed
            raise
        else:
            self._state = OpenState.inactive

    async def stop(self):
        """
        Perform any underlying operations needed to stop using this resource and tidy up, such as
        releasing pooled connections.  This method should return only when ready to be started
        again.
        """

    def disable(self):
        """
        Prevent this openable from being run by the host.
        """
        if self._state == OpenState.disabled:
            return
        elif self._state in (OpenState.inactive, OpenState.failed):
            self._state = OpenState.disabled
        else:
            raise RuntimeError("Can't disable when currently running")

    def enable(self):
        """
        Restore normal operation of this openable.
        """
        if self._state == OpenState.disabled:
            self._state = OpenState.inactive
