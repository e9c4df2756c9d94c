"""
Decision of whether, and how, a mention notifies its target.

For each mention, the first applicable rule wins:

1. The target has no preference record: nothing is sent, and the mention is reported as not
   handled.
2. The target has ignored the mentioner: nothing is sent, but the mention is reported as handled,
   exactly as if it had been delivered, so that ignore lists stay hidden.
3. The mentioner is on cooldown: nothing is sent, and the mention is reported as not handled.
4. Otherwise, the target's :class:`.PreferenceMode` decides:

   * ``ALWAYS``: notify.
   * ``SILENT_IN_COMBAT``: notify, without sound if the target is in combat.
   * ``NEVER_IN_COMBAT``: notify unless the target is in combat.
   * ``NEVER``: don't notify, but report the mention as handled.

Notifications are routed to the channels of the target's :class:`.DisplayMode`, and each one
restarts the mentioner's cooldown.
"""

from enum import Enum
import logging

from .model import NotifyChannel, PreferenceMode, player_uuid
from .util import Clock, pretty_str


log = logging.getLogger(__name__)


def never_in_combat(player_id):
    """
    Default combat oracle, for servers without combat tracking.
    """
    return False


class MentionOutcome(Enum):
    """
    Result of evaluating a mention.

    Attributes:
        missing:
            Target has no preference record.
        ignored:
            Target has ignored the mentioner.
        cooldown:
            Mentioner is rate-limited.
        suppressed:
            Target's preferences rule out a notification right now.
        notified:
            A notification should be sent.
    """
    missing = "missing"
    ignored = "ignored"
    cooldown = "cooldown"
    suppressed = "suppressed"
    notified = "notified"

    @property
    def handled(self):
        """
        ``True`` if the caller should treat the mention as delivered.
        """
        return self in (MentionOutcome.ignored, MentionOutcome.suppressed,
                        MentionOutcome.notified)


@pretty_str
class MentionDecision:
    """
    Evaluated outcome of one mention.

    Attributes:
        target (uuid.UUID):
            Mentioned player.
        mentioner (uuid.UUID):
            Player who made the mention.
        outcome (.MentionOutcome):
            Which rule applied.
        channels (.NotifyChannel frozenset):
            Channels to notify through, empty unless notified.
        sound (str):
            Sound key for the sound channel, if notified.
        silent (bool):
            ``True`` if sound was dropped because the target is in combat.
    """

    __slots__ = ("target", "mentioner", "outcome", "channels", "sound", "silent")

    def __init__(self, target, mentioner, outcome, channels=frozenset(), sound=None,
                 silent=False):
        self.target = target
        self.mentioner = mentioner
        self.outcome = outcome
        self.channels = channels
        self.sound = sound
        self.silent = silent

    @property
    def handled(self):
        return self.outcome.handled

    def __repr__(self):
        return "<{}: {} -> {} {}{}>".format(self.__class__.__name__, self.mentioner, self.target,
                                            self.outcome.name,
                                            " {}".format(sorted(channel.name for channel
                                                                in self.channels))
                                            if self.channels else "")


class MentionEngine:
    """
    Combines cached preferences, ignore lists and cooldowns to act on mentions.

    Attributes:
        preferences (.PreferenceCache):
            Target preference lookup.
        ignores (.IgnoreCache):
            Target ignore list lookup.
        cooldowns (.CooldownTracker):
            Per-mentioner rate limit state.
        notifier:
            Object with a ``notify(target, mentioner, channels, sound)`` method, which delivers
            notifications.
        cooldown (float):
            Seconds a mentioner is throttled after a notification; below 1 disables throttling.
        in_combat (callable):
            Combat oracle, taking a player ID and returning ``True`` if they're fighting.
        clock (callable):
            Source of the current time, in seconds.
    """

    def __init__(self, preferences, ignores, cooldowns, notifier, cooldown=3, in_combat=None,
                 clock=None):
        self.preferences = preferences
        self.ignores = ignores
        self.cooldowns = cooldowns
        self.notifier = notifier
        self.cooldown = cooldown
        self.in_combat = in_combat or never_in_combat
        self.clock = clock or Clock()

    def evaluate(self, target, mentioner):
        """
        Decide what a mention should do, without sending anything or touching cooldowns.

        Args:
            target (uuid.UUID):
                Mentioned player.
            mentioner (uuid.UUID):
                Player who made the mention.

        Returns:
            .MentionDecision:
                Evaluated outcome.
        """
        target = player_uuid(target)
        mentioner = player_uuid(mentioner)
        record = self.preferences.get(target)
        if not record:
            log.error("No preferences found for mentioned player %s", target)
            return MentionDecision(target, mentioner, MentionOutcome.missing)
        if self.ignores.is_ignored(target, mentioner):
            log.debug("Mention of %s by %s ignored", target, mentioner)
            return MentionDecision(target, mentioner, MentionOutcome.ignored)
        if self.cooldowns.is_on_cooldown(mentioner):
            log.debug("Mention of %s by %s throttled", target, mentioner)
            return MentionDecision(target, mentioner, MentionOutcome.cooldown)
        silent = False
        if record.preference == PreferenceMode.NEVER:
            return MentionDecision(target, mentioner, MentionOutcome.suppressed)
        elif record.preference == PreferenceMode.NEVER_IN_COMBAT:
            if self.in_combat(target):
                return MentionDecision(target, mentioner, MentionOutcome.suppressed)
        elif record.preference == PreferenceMode.SILENT_IN_COMBAT:
            silent = bool(self.in_combat(target))
        channels = record.display.channels
        if silent:
            channels -= {NotifyChannel.sound}
        return MentionDecision(target, mentioner, MentionOutcome.notified, channels,
                               record.sound, silent)

    def mention_player(self, target, mentioner):
        """
        Act on a mention: evaluate it, send any notification, and restart the mentioner's cooldown
        if notified.

        Args:
            target (uuid.UUID):
                Mentioned player.
            mentioner (uuid.UUID):
                Player who made the mention.

        Returns:
            bool:
                ``True`` if the mention was handled (whether or not anything was sent), ``False``
                if the target has no preferences or the mentioner is on cooldown.
        """
        decision = self.evaluate(target, mentioner)
        if decision.outcome != MentionOutcome.notified:
            return decision.handled
        if self.cooldown >= 1:
            # Claim before sending: only one concurrent mention per mentioner gets through.
            if not self.cooldowns.try_acquire(decision.mentioner, self.clock() + self.cooldown):
                log.debug("Mention of %s by %s lost cooldown race", decision.target,
                          decision.mentioner)
                return False
        if decision.channels:
            try:
                self.notifier.notify(decision.target, decision.mentioner, decision.channels,
                                     decision.sound)
            except Exception:
                log.exception("Failed to notify %s of mention by %s",
                              decision.target, decision.mentioner)
        return True
