"""
Loading of config files, as used by the console entry point.  Running ``omen`` or
``python -m omen`` reads a config file, builds a :class:`.Host` from its hooks, and runs it until
interrupted.

Requirements:
    `anyconfig <https://python-anyconfig.readthedocs.io/en/latest/>`_

    Any format-specific libraries for config files (e.g. ruamel.yaml for YAML files)

Config:
    path (str list):
        Extra directories to add to the import path, for custom notifiers or combat oracles.
    hooks ((str, dict) dict):
        Hooks to create, keyed by name, each with a ``path`` (dotted class name), optional
        ``config``, and ``enabled`` (``True`` by default).
    logging (dict):
        Python :mod:`logging` config, passed to :func:`logging.config.dictConfig`.  If omitted,
        logs are written to the console at ``INFO`` level.
"""

from asyncio import new_event_loop
import logging
import logging.config
import signal
import sys

import anyconfig

import omen


log = logging.getLogger(__name__)


class _Schema:

    _hooks = {str: {"path": str,
                    omen.Optional("enabled", True): bool,
                    omen.Optional("config", dict): dict}}

    _logging = {omen.Optional("disable_existing_loggers", False): bool}

    config = omen.Schema({omen.Optional("path", list): [str],
                          omen.Optional("hooks", dict): _hooks,
                          omen.Optional("logging"): omen.Nullable(_logging)})


def config_to_host(config):
    """
    Create a host and its hooks from a validated config.

    Args:
        config (dict):
            Parsed config file content.

    Returns:
        .Host:
            Loaded but unopened host.
    """
    host = omen.Host()
    for name, spec in config["hooks"].items():
        cls = omen.resolve_import(spec["path"])
        host.add_hook(cls(name, spec["config"], host), spec["enabled"])
    host.loaded()
    return host


def _handle_signal(signum, task):
    # Gracefully accept a signal once, then revert to the default handler.
    def handler(_signum, _frame):
        log.info("Closing on signal")
        task.cancel()
        signal.signal(signum, original)
    original = signal.getsignal(signum)
    signal.signal(signum, handler)


def main(path):
    config = _Schema.config(anyconfig.load(path))
    for search in config["path"]:
        sys.path.append(search)
    if config["logging"]:
        logging.config.dictConfig(config["logging"])
    else:
        logging.basicConfig(level=logging.INFO)
    log.info("Creating hooks")
    host = config_to_host(config)
    loop = new_event_loop()
    task = loop.create_task(host.run())
    for signum in (signal.SIGINT, signal.SIGTERM):
        _handle_signal(signum, task)
    try:
        log.info("Starting host")
        loop.run_until_complete(task)
    finally:
        loop.close()
