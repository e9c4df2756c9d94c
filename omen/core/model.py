from enum import Enum
from uuid import UUID

from .util import pretty_str


class NotifyChannel(Enum):
    """
    Individual means of telling a player they were mentioned.

    Attributes:
        chat:
            Message added to the player's chat log.
        actionbar:
            Short-lived status line text.
        sound:
            Sound effect played to the player.
    """
    chat = "chat"
    actionbar = "actionbar"
    sound = "sound"


class _NamedEnum(Enum):

    @classmethod
    def parse(cls, value):
        """
        Look up a member by name, case-insensitively.  Members pass through unchanged.

        Args:
            value (str):
                Member name, e.g. ``"chat_and_sound"``.

        Raises:
            ValueError:
                When the name doesn't match any member.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError("Unknown {} {!r}".format(cls.__name__, value)) from None


class DisplayMode(_NamedEnum):
    """
    Player-selected combination of channels used for mention notifications.
    """
    ALL = (NotifyChannel.chat, NotifyChannel.actionbar, NotifyChannel.sound)
    ONLY_CHAT = (NotifyChannel.chat,)
    ONLY_SOUND = (NotifyChannel.sound,)
    ONLY_ACTIONBAR = (NotifyChannel.actionbar,)
    CHAT_AND_SOUND = (NotifyChannel.chat, NotifyChannel.sound)
    CHAT_AND_ACTIONBAR = (NotifyChannel.chat, NotifyChannel.actionbar)
    ACTIONBAR_AND_SOUND = (NotifyChannel.actionbar, NotifyChannel.sound)

    @property
    def channels(self):
        return frozenset(self.value)


class PreferenceMode(_NamedEnum):
    """
    Player-selected policy for whether mentions notify them at all.

    Attributes:
        ALWAYS:
            Always notify.
        SILENT_IN_COMBAT:
            Always notify, but without sound whilst in combat.
        NEVER_IN_COMBAT:
            Notify only when out of combat.
        NEVER:
            Never notify.
    """
    ALWAYS = "always"
    SILENT_IN_COMBAT = "silent-in-combat"
    NEVER_IN_COMBAT = "never-in-combat"
    NEVER = "never"


def player_uuid(value):
    """
    Coerce a player identifier into a :class:`uuid.UUID`.

    Args:
        value (str or uuid.UUID):
            Canonical UUID string or existing UUID.

    Returns:
        uuid.UUID:
            Parsed identifier.
    """
    return value if isinstance(value, UUID) else UUID(str(value))


@pretty_str
class PlayerPreferences:
    """
    Notification settings for a single player.  Instances are immutable: use :meth:`replace` to
    derive a modified copy.

    Attributes:
        player_id (uuid.UUID):
            Unique player identifier.
        sound (str):
            Key of the sound played on mention.  Unrecognised keys are left for the notifier to
            resolve to its own default.
        display (.DisplayMode):
            Channels used for notifications.
        preference (.PreferenceMode):
            When notifications are sent.
    """

    __slots__ = ("player_id", "sound", "display", "preference")

    def __init__(self, player_id, sound, display, preference):
        object.__setattr__(self, "player_id", player_uuid(player_id))
        object.__setattr__(self, "sound", sound)
        object.__setattr__(self, "display", DisplayMode.parse(display))
        object.__setattr__(self, "preference", PreferenceMode.parse(preference))

    def __setattr__(self, name, value):
        raise AttributeError("{} is immutable".format(self.__class__.__name__))

    def replace(self, **changes):
        """
        Create a copy of this record with some fields changed.

        Args:
            changes:
                New values keyed by attribute name.

        Returns:
            .PlayerPreferences:
                Modified copy.
        """
        fields = {name: getattr(self, name) for name in self.__slots__}
        fields.update(changes)
        return self.__class__(**fields)

    def __eq__(self, other):
        return (isinstance(other, PlayerPreferences) and
                all(getattr(self, name) == getattr(other, name) for name in self.__slots__))

    def __hash__(self):
        return hash(tuple(getattr(self, name) for name in self.__slots__))

    def __repr__(self):
        return "<{}: {} {!r} {} {}>".format(self.__class__.__name__, self.player_id, self.sound,
                                            self.display.name, self.preference.name)
