from .core.cache import ExpiringCache, IgnoreCache, PreferenceCache
from .core.cooldown import CooldownTracker
from .core.engine import MentionDecision, MentionEngine, MentionOutcome, never_in_combat
from .core.error import ConfigError, HookError
from .core.host import Host
from .core.hook import Hook, ResourceHook
from .core.model import DisplayMode, NotifyChannel, PlayerPreferences, PreferenceMode, player_uuid
from .core.schema import Any, Invalid, Nullable, Optional, Schema, SchemaError, Validator
from .core.storage import MySQLBackend, SQLiteBackend, StorageBackend, open_backend
from .core.util import (pretty_str, resolve_import, Clock, Configurable, KeyLock, OpenState,
                        Openable)
