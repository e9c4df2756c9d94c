from asyncio import CancelledError, Task, get_running_loop, wait
import logging
from operator import attrgetter

from .error import ConfigError
from .hook import Hook, ResourceHook
from .util import OpenState, pretty_str


log = logging.getLogger(__name__)


@pretty_str
class Host:
    """
    Main class responsible for starting, stopping, and providing access to hooks.

    To run as the main coroutine for an application, use :meth:`run` in conjunction with
    :func:`asyncio.run`.  To stop a running host in an async context, await :meth:`quit`.

    For finer control, you can call :meth:`open` and :meth:`close` explicitly.

    Attributes:
        hooks ((str, .Hook) dict):
            Collection of all registered hooks, keyed by name.
        plain_hooks ((str, .Hook) dict):
            As above, but excluding resources.
        resources ((class, .ResourceHook) dict):
            Collection of all registered resource hooks, keyed by class.
        running (bool):
            Whether the host is currently inside :meth:`run`.
    """

    __slots__ = ("_hooks", "_resources", "_loaded", "_process")

    def __init__(self):
        self._hooks = {}
        self._resources = {}
        self._loaded = False
        self._process = None

    hooks = property(lambda self: dict(self._hooks))
    resources = property(lambda self: dict(self._resources))

    @property
    def plain_hooks(self):
        return {name: hook for name, hook in self._hooks.items()
                if not isinstance(hook, ResourceHook)}

    def __contains__(self, key):
        return key in self._hooks

    def __getitem__(self, key):
        if isinstance(key, str):
            return self._hooks[key]
        elif isinstance(key, type) and issubclass(key, ResourceHook):
            return self._resources[key]
        else:
            raise TypeError(key)

    @property
    def running(self):
        return self._process is not None

    def add_hook(self, hook, enabled=True):
        """
        Register a hook to the host.

        Args:
            hook (.Hook):
                Existing hook instance to add.
            enabled (bool):
                ``True`` to start this hook with the host.

        Returns:
            str:
                Name used to reference this hook.
        """
        if not isinstance(hook, Hook):
            raise TypeError(hook)
        elif hook.name in self._hooks:
            raise ConfigError("Hook name '{}' already registered".format(hook.name))
        log.info("Adding hook: %r (%s)", hook.name, hook.__class__.__name__)
        if isinstance(hook, ResourceHook):
            # Key by the class directly under ResourceHook, so subclasses fill the same slot.
            mro = hook.__class__.__mro__
            subclass = mro[mro.index(ResourceHook) - 1]
            if subclass in self._resources:
                raise ConfigError("Resource class '{}' already registered"
                                  .format(subclass.__name__))
            log.info("Adding resource: %r (%s)", hook.name, subclass.__name__)
            self._resources[subclass] = hook
        self._hooks[hook.name] = hook
        if enabled:
            if self._loaded:
                hook.on_load()
        else:
            hook.disable()
        return hook.name

    def remove_hook(self, name):
        """
        Unregister an existing hook.

        .. warning::
            This will not notify any dependent hooks with a reference to this hook.

        Args:
            name (str):
                Name of a previously registered hook instance to remove.

        Returns:
            .Hook:
                Removed hook instance.
        """
        if name not in self._hooks:
            raise RuntimeError("Hook '{}' not registered to host".format(name))
        log.info("Removing hook: %s", name)
        hook = self._hooks.pop(name)
        for cls, resource in list(self._resources.items()):
            if resource is hook:
                log.info("Removing resource: %r (%s)", name, cls.__name__)
                del self._resources[cls]
        return hook

    def loaded(self):
        """
        Trigger the on-load event for all hooks, resources first.
        """
        for hook in self._resources.values():
            if hook.state != OpenState.disabled:
                hook.on_load()
        for hook in self.plain_hooks.values():
            if hook.state != OpenState.disabled:
                hook.on_load()
        self._loaded = True

    async def _try_state(self, state, objs, timeout=None):
        objs = [obj for obj in objs if obj.state != OpenState.disabled]
        if not objs:
            return
        action = "open" if state == OpenState.active else "close"
        getter = attrgetter(action)
        tasks = {Task(getter(obj)()): obj for obj in objs}
        done, pending = await wait(tasks.keys(), timeout=timeout)
        for task in done:
            exc = task.exception()
            if exc:
                obj = tasks[task]
                log.error("Failed to %s %r", action, obj.name, exc_info=exc)
        for task in pending:
            obj = tasks[task]
            log.warning("Failed to %s %r after %s seconds", action, obj.name, timeout)

    async def open(self):
        """
        Start all resources, then all remaining hooks.
        """
        if not self._loaded:
            raise RuntimeError("On-load event must be sent before opening")
        log.debug("Opening resources")
        await self._try_state(OpenState.active, self._resources.values(), 30)
        log.debug("Opening remaining hooks")
        await self._try_state(OpenState.active, self.plain_hooks.values(), 30)

    async def close(self):
        """
        Stop all non-resource hooks, then all resources.
        """
        log.debug("Closing non-resource hooks")
        await self._try_state(OpenState.inactive, self.plain_hooks.values(), 30)
        log.debug("Closing resources")
        await self._try_state(OpenState.inactive, self._resources.values(), 30)

    async def run(self):
        """
        Main entry point for running as a full application.  Opens all hooks, blocks (when
        awaited) until :meth:`quit` is called or the task is cancelled, and closes hooks during
        shutdown.
        """
        if self._process:
            raise RuntimeError("Host is already running")
        if not self._loaded:
            self.loaded()
        await self.open()
        try:
            self._process = get_running_loop().create_future()
            await self._process
        except CancelledError:
            log.debug("Host run cancelled")
        finally:
            self._process = None
            await self.close()

    async def quit(self):
        """
        Request the running host to stop.  This only works if started via :meth:`run`.
        """
        if self._process:
            self._process.cancel()

    def __repr__(self):
        return "<{}: {}R {}H{}>".format(self.__class__.__name__, len(self._resources),
                                        len(self.plain_hooks), " running" if self.running else "")
