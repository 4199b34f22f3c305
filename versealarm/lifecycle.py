"""Alarm lifecycle: arming, ringing, snoozing and dismissal.

Transitions for one alarm id are serialized by a per-alarm asyncio lock.
Different alarms proceed independently. Whether the keep-warm audio session
is needed is recomputed from the persisted alarms after every mutation.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from .errors import AlarmOperationError, InvalidTransitionError, PayloadError
from .interfaces import AlarmOutput, AlarmStore, TriggerScheduler
from .models import Alarm, Passage, alarm_from_payload, alarm_to_payload
from .passages import FALLBACK_PASSAGES, PassageProvider
from .recurrence import next_fire_time, snooze_fire_time
from .triggers import TriggerFired
from .verification import InputResult, VerificationGate, VerificationSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

VIBRATION_PATTERN = (0, 1000, 500, 1000, 500)
REJECT_PATTERN = (100,)
SNOOZE_SUFFIX = ":snooze"


def snooze_trigger_id(alarm_id: str) -> str:
    """Trigger id of a snooze, kept apart from the alarm's own schedule."""
    return f"{alarm_id}{SNOOZE_SUFFIX}"


class AlarmState(str, Enum):
    DISABLED = "disabled"
    ARMED = "armed"
    RINGING = "ringing"


class RingingPhase(str, Enum):
    LOADING = "loading"
    CHALLENGE = "challenge"


@dataclass
class RingingEpisode:
    """One ringing of an alarm, from trigger until snooze or dismissal."""

    alarm: Alarm  # As it rang; a snooze copy never repeats
    started_at: datetime
    snoozed_from: str | None = None
    phase: RingingPhase = RingingPhase.LOADING
    gate: VerificationGate | None = None
    passage_task: asyncio.Task | None = None

    @property
    def session(self) -> VerificationSession | None:
        return self.gate.session if self.gate else None

    @property
    def passage(self) -> Passage | None:
        return self.gate.session.passage if self.gate else None


class AlarmLifecycle:
    """State machine driving alarms through armed, ringing and resolved."""

    def __init__(
        self,
        store: AlarmStore,
        triggers: TriggerScheduler,
        output: AlarmOutput,
        passages: PassageProvider,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.triggers = triggers
        self.output = output
        self.passages = passages
        self.clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._aggregate_lock = asyncio.Lock()
        self._episodes: dict[str, RingingEpisode] = {}
        self._keep_warm_running = False

    # Queries

    def episode(self, alarm_id: str) -> RingingEpisode | None:
        return self._episodes.get(alarm_id)

    def state_of(self, alarm_id: str) -> AlarmState:
        if alarm_id in self._episodes:
            return AlarmState.RINGING
        alarm = self.store.get(alarm_id)
        if alarm and alarm.enabled:
            return AlarmState.ARMED
        return AlarmState.DISABLED

    @property
    def keep_warm_running(self) -> bool:
        return self._keep_warm_running

    # Edit operations

    async def save(self, alarm: Alarm) -> datetime | None:
        """Persist a created or edited alarm and (re)arm it."""
        async with self._lock(alarm.id):
            self._call(self.store.put, alarm)
            instant = self._arm_locked(alarm)
        await self._sync_keep_warm()
        return instant

    async def arm(self, alarm: Alarm) -> datetime | None:
        """Register the alarm's next trigger, or clear it if disabled."""
        async with self._lock(alarm.id):
            instant = self._arm_locked(alarm)
        await self._sync_keep_warm()
        return instant

    async def toggle(self, alarm_id: str, enabled: bool) -> datetime | None:
        async with self._lock(alarm_id):
            alarm = self._call(self.store.get, alarm_id)
            if alarm is None:
                raise AlarmOperationError(f"Unknown alarm {alarm_id}")
            updated = replace(alarm, enabled=enabled)
            self._call(self.store.put, updated)
            if enabled:
                instant = self._arm_locked(updated)
            else:
                self._disarm_locked(alarm_id)
                instant = None
            logger.info(f"Alarm {alarm_id} {'enabled' if enabled else 'disabled'}")
        await self._sync_keep_warm()
        return instant

    async def delete(self, alarm_id: str) -> None:
        async with self._lock(alarm_id):
            self._call(self.store.delete, alarm_id)
            self._disarm_locked(alarm_id)
            logger.info(f"Alarm {alarm_id} deleted")
        lock = self._locks.get(alarm_id)
        if lock is not None and not lock.locked():
            del self._locks[alarm_id]
        await self._sync_keep_warm()

    async def restore(self) -> None:
        """Re-register every persisted alarm, e.g. at process start."""
        alarms = self._call(self.store.get_all)
        for alarm in alarms:
            async with self._lock(alarm.id):
                self._arm_locked(alarm)
        logger.info(f"Restored {len(alarms)} alarms")
        await self._sync_keep_warm()

    # Ringing

    async def handle(self, message: TriggerFired) -> RingingEpisode | None:
        """Entry point for the trigger subsystem."""
        try:
            alarm, snooze_of = alarm_from_payload(message.payload)
        except PayloadError as e:
            logger.error(f"Dropping trigger {message.trigger_id}: {e}")
            return None
        return await self.fire(snooze_of or alarm.id, payload=message.payload)

    async def fire(self, alarm_id: str, payload: str | None = None) -> RingingEpisode | None:
        """Start ringing. The passage loads in the background."""
        async with self._lock(alarm_id):
            existing = self._episodes.get(alarm_id)
            if existing:
                logger.warning(f"Alarm {alarm_id} is already ringing")
                return existing

            payload_alarm, snooze_of = (
                alarm_from_payload(payload) if payload else (None, None)
            )
            stored = self._call(self.store.get, alarm_id)
            if stored is not None and not stored.enabled:
                logger.warning(f"Ignoring stale trigger for disabled alarm {alarm_id}")
                return None

            alarm = payload_alarm if snooze_of or stored is None else stored
            if alarm is None:
                raise AlarmOperationError(f"Unknown alarm {alarm_id}")

            episode = RingingEpisode(
                alarm=alarm, started_at=self.clock(), snoozed_from=snooze_of
            )
            self._episodes[alarm_id] = episode
            self._notify(self.output.start_continuous_sound, alarm.sound)
            if alarm.vibrate:
                self._notify(self.output.vibrate, VIBRATION_PATTERN, repeat=True)
            episode.passage_task = asyncio.create_task(
                self._load_passage(alarm_id, episode), name=f"passage-{alarm_id}"
            )
            logger.info(f"Alarm {alarm_id} ringing ({alarm.label or 'no label'})")
            return episode

    async def handle_input(self, alarm_id: str, value: str) -> InputResult:
        """Offer the full contents of the challenge input after one edit."""
        async with self._lock(alarm_id):
            episode = self._episodes.get(alarm_id)
            if episode is None or episode.gate is None:
                return InputResult.IGNORED
            result = episode.gate.submit(value)
            if result is InputResult.COMPLETED:
                await self._dismiss_locked(alarm_id, episode)
            return result

    async def type_characters(self, alarm_id: str, chars: str) -> InputResult:
        """Feed typed characters one keystroke at a time."""
        async with self._lock(alarm_id):
            episode = self._episodes.get(alarm_id)
            if episode is None or episode.gate is None:
                return InputResult.IGNORED
            result = episode.gate.type_characters(chars)
            if result is InputResult.COMPLETED:
                await self._dismiss_locked(alarm_id, episode)
            return result

    async def dismiss(self, alarm_id: str) -> AlarmState:
        """Resolve a ringing alarm whose challenge has been completed."""
        async with self._lock(alarm_id):
            episode = self._episodes.get(alarm_id)
            if episode is None:
                raise InvalidTransitionError(f"Alarm {alarm_id} is not ringing")
            if episode.session is None or not episode.session.completed:
                raise InvalidTransitionError(
                    f"Alarm {alarm_id} challenge has not been completed"
                )
            return await self._dismiss_locked(alarm_id, episode)

    async def snooze(self, alarm_id: str) -> datetime:
        """Silence a ringing alarm and ring it again after the snooze duration."""
        async with self._lock(alarm_id):
            episode = self._episodes.get(alarm_id)
            if episode is None:
                raise InvalidTransitionError(f"Alarm {alarm_id} is not ringing")
            alarm = episode.alarm
            if not alarm.snooze_enabled:
                raise InvalidTransitionError(f"Snooze is disabled for alarm {alarm_id}")

            instant = snooze_fire_time(self.clock(), alarm.snooze_duration_minutes)
            snoozed = replace(
                alarm,
                time_of_day=instant.time(),
                repeat_days=frozenset(),
                enabled=True,
            )
            self._call(
                self.triggers.register_one_shot,
                snooze_trigger_id(alarm_id),
                instant,
                alarm_to_payload(snoozed, snooze_of=alarm_id),
            )
            self._end_episode(alarm_id)
            logger.info(f"Alarm {alarm_id} snoozed until {instant.isoformat()}")
            return instant

    # Internals

    def _lock(self, alarm_id: str) -> asyncio.Lock:
        return self._locks.setdefault(alarm_id, asyncio.Lock())

    def _arm_locked(self, alarm: Alarm) -> datetime | None:
        if not alarm.enabled:
            self._call(self.triggers.cancel, alarm.id)
            self._call(self.triggers.cancel, snooze_trigger_id(alarm.id))
            return None

        instant = next_fire_time(alarm.time_of_day, alarm.repeat_days, self.clock())
        self._call(
            self.triggers.register_one_shot, alarm.id, instant, alarm_to_payload(alarm)
        )
        logger.info(f"Alarm {alarm.id} armed for {instant.isoformat()}")
        return instant

    def _disarm_locked(self, alarm_id: str) -> None:
        self._call(self.triggers.cancel, alarm_id)
        self._call(self.triggers.cancel, snooze_trigger_id(alarm_id))
        self._end_episode(alarm_id)

    async def _dismiss_locked(self, alarm_id: str, episode: RingingEpisode) -> AlarmState:
        # The persisted record decides once vs repeat; a snooze copy never repeats
        parent = self._call(self.store.get, alarm_id)
        if parent is None:
            logger.warning(f"Dismissed alarm {alarm_id} no longer exists")
            state = AlarmState.DISABLED
        elif parent.is_repeating and parent.enabled:
            self._arm_locked(parent)
            state = AlarmState.ARMED
        else:
            self._call(self.store.put, replace(parent, enabled=False))
            self._call(self.triggers.cancel, alarm_id)
            state = AlarmState.DISABLED
        self._call(self.triggers.cancel, snooze_trigger_id(alarm_id))

        self._end_episode(alarm_id)
        logger.info(f"Alarm {alarm_id} dismissed, now {state.value}")
        await self._sync_keep_warm()
        return state

    def _end_episode(self, alarm_id: str) -> None:
        episode = self._episodes.pop(alarm_id, None)
        if episode is None:
            return
        task = episode.passage_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

        # Output is shared by every ringing alarm
        remaining = next(iter(self._episodes.values()), None)
        if remaining is None:
            self._notify(self.output.stop_sound)
            self._notify(self.output.cancel_vibration)
            return
        if remaining.alarm.sound != episode.alarm.sound:
            self._notify(self.output.start_continuous_sound, remaining.alarm.sound)
        if not remaining.alarm.vibrate:
            self._notify(self.output.cancel_vibration)
        elif not episode.alarm.vibrate:
            self._notify(self.output.vibrate, VIBRATION_PATTERN, repeat=True)
        logger.info(f"Alarm {remaining.alarm.id} is still ringing")

    async def _load_passage(self, alarm_id: str, episode: RingingEpisode) -> None:
        try:
            passage = await asyncio.to_thread(self.passages.get_passage)
        except Exception as e:
            logger.error(f"Passage provider failed for alarm {alarm_id}: {e}")
            passage = FALLBACK_PASSAGES[0]

        async with self._lock(alarm_id):
            if self._episodes.get(alarm_id) is not episode:
                logger.info(f"Discarding late passage for alarm {alarm_id}")
                return
            episode.gate = VerificationGate(
                VerificationSession(passage), on_reject=self._reject_feedback
            )
            episode.phase = RingingPhase.CHALLENGE
            logger.info(f"Challenge ready for alarm {alarm_id}: {passage.source_label}")

    def _reject_feedback(self) -> None:
        self._notify(self.output.vibrate, REJECT_PATTERN)

    async def _sync_keep_warm(self) -> None:
        """Start or stop the keep-warm session to match the persisted alarms."""
        async with self._aggregate_lock:
            required = any(a.enabled for a in self._call(self.store.get_all))
            if required and not self._keep_warm_running:
                self._notify(self.output.start_keep_warm_session)
                self._keep_warm_running = True
            elif not required and self._keep_warm_running:
                self._notify(self.output.stop_keep_warm_session)
                self._keep_warm_running = False

    @staticmethod
    def _call(fn: Callable[..., T], *args: Any) -> T:
        """Run a store or trigger call, surfacing failure as AlarmOperationError."""
        try:
            return fn(*args)
        except AlarmOperationError:
            raise
        except Exception as e:
            name = getattr(fn, "__name__", repr(fn))
            raise AlarmOperationError(f"{name} failed: {e}") from e

    @staticmethod
    def _notify(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Fire-and-forget call to an output collaborator."""
        try:
            fn(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Alarm output call failed: {e}")
