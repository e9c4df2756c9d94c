class ConfigError(Exception):
    """
    Error for invalid configuration in a given context.
    """


class HookError(Exception):
    """
    Error for hook-specific problems.
    """

