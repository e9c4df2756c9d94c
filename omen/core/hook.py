from .util import Configurable, Openable, pretty_str


@pretty_str
class Hook(Configurable, Openable):
    """
    Base of all hook classes, providing some service to the rest of the application via the
    provided host instance.

    Instantiation may raise :class:`.ConfigError` or :class:`.Invalid` if the provided
    configuration is invalid.
    """

    def on_load(self):
        """
        Perform any additional one-time setup that requires other hooks to be loaded.
        """

    def __repr__(self):
        return "<{}: {}>".format(self.__class__.__name__, self.name)


class ResourceHook(Hook):
    """
    Variant of hooks that globally provide access to some resource.

    Only one of each class may be loaded, which happens before regular hooks, and such hooks are
    keyed by their class rather than a name, allowing for easier lookups.
    """
