"""Centralized state management for the display appliance.

A single ``StateStore`` owns the canonical :class:`DisplayState`. Snapshots are
frozen dataclasses, so value equality is structural and callers cannot mutate
what they are handed. Every committed change is pushed synchronously to the
registered listeners in registration order.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from .config import SystemDefaults

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    """What content class the device is presenting"""

    READY = "ready"
    MUSIC = "music"
    AIRPLAY = "airplay"
    CAST = "cast"
    IMAGE = "image"
    OFF = "off"

    @classmethod
    def parse(cls, value: Any) -> Optional["Mode"]:
        """Return the mode named by value, or None if it is not a mode"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def _field_for(wire_keys: Mapping[str, str], key: str) -> Optional[str]:
    if key in wire_keys:
        return key
    for name, wire in wire_keys.items():
        if wire == key:
            return name
    return None


@dataclass(frozen=True)
class MediaSnapshot:
    """Currently playing media as reported by the media source"""

    is_playing: bool = False
    title: str = ""
    artist: str = ""
    album: str = ""
    cover_url: str = ""
    progress_ms: int = 0

    _WIRE_KEYS = {
        "is_playing": "isPlaying",
        "title": "title",
        "artist": "artist",
        "album": "album",
        "cover_url": "coverUrl",
        "progress_ms": "progressMs",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, name) for name, wire in self._WIRE_KEYS.items()}

    @classmethod
    def field_for(cls, key: str) -> Optional[str]:
        """Map a wire key or attribute name to the attribute name"""
        return _field_for(cls._WIRE_KEYS, key)


@dataclass(frozen=True)
class Schedule:
    """Daily sleep/wake schedule"""

    weekday_wake_time: str = SystemDefaults.DEFAULT_WAKE_TIME
    sleep_time: str = SystemDefaults.DEFAULT_SLEEP_TIME
    enabled: bool = False

    _WIRE_KEYS = {
        "weekday_wake_time": "weekdayWakeTime",
        "sleep_time": "sleepTime",
        "enabled": "enabled",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, name) for name, wire in self._WIRE_KEYS.items()}

    @classmethod
    def field_for(cls, key: str) -> Optional[str]:
        return _field_for(cls._WIRE_KEYS, key)


@dataclass(frozen=True)
class DisplayState:
    """Immutable snapshot of everything the device is doing"""

    current_mode: Mode = Mode.READY
    last_mode: Optional[Mode] = None
    is_sleeping: bool = False
    image_url: Optional[str] = None
    display_subscriber_present: bool = False
    media: MediaSnapshot = field(default_factory=MediaSnapshot)
    schedule: Schedule = field(default_factory=Schedule)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation broadcast to subscribers"""
        return {
            "currentMode": self.current_mode.value,
            "lastMode": self.last_mode.value if self.last_mode else None,
            "isSleeping": self.is_sleeping,
            "imageUrl": self.image_url,
            "displaySubscriberPresent": self.display_subscriber_present,
            "media": self.media.to_dict(),
            "schedule": self.schedule.to_dict(),
        }


StateListener = Callable[[DisplayState], None]


class Subscription:
    """Handle returned by :meth:`StateStore.on_change`"""

    def __init__(self, store: "StateStore", listener: StateListener):
        self._store = store
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_subscription(self)


class StateStore:
    """Owns the single DisplayState and notifies listeners on change"""

    _STATE_FIELDS = frozenset(f.name for f in fields(DisplayState))

    def __init__(self, initial: Optional[DisplayState] = None):
        self._state = initial or DisplayState()
        self._subscriptions: List[Subscription] = []
        self._display_subscribers: Set[str] = set()

    def get(self) -> DisplayState:
        """Get the current snapshot"""
        return self._state

    def on_change(self, listener: StateListener) -> Subscription:
        """Register a listener called with every committed snapshot"""
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        self._subscriptions = [s for s in self._subscriptions if s is not subscription]

    def _commit(self, new_state: DisplayState, force: bool = False) -> bool:
        if not force and new_state == self._state:
            return False
        self._state = new_state
        self._notify()
        return True

    def _notify(self) -> None:
        snapshot = self._state
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.listener(snapshot)
            except Exception as e:
                logger.error(f"State listener failed: {e}")

    def apply(self, **updates: Any) -> bool:
        """Merge top-level fields; notify only if the result differs"""
        unknown = set(updates) - self._STATE_FIELDS
        if unknown:
            raise TypeError(f"Unknown state fields: {', '.join(sorted(unknown))}")
        return self._commit(replace(self._state, **updates))

    def set_mode(self, mode: Mode) -> bool:
        """Change mode; returns whether orchestration should follow"""
        state = self._state
        if state.is_sleeping or mode == state.current_mode:
            return False
        self._commit(
            replace(state, last_mode=state.current_mode, current_mode=mode), force=True
        )
        logger.info(f"Mode changed: {state.current_mode.value} -> {mode.value}")
        return True

    def set_sleeping(self, sleeping: bool) -> None:
        """Set the sleep flag; always observable"""
        self._commit(replace(self._state, is_sleeping=sleeping), force=True)

    def update_media(
        self, snapshot: Union[MediaSnapshot, Mapping[str, Any]]
    ) -> bool:
        """Overlay a media snapshot; notify only if it differs"""
        if isinstance(snapshot, MediaSnapshot):
            media = snapshot
        else:
            overlay = {}
            for key, value in snapshot.items():
                name = MediaSnapshot.field_for(key)
                if name is not None:
                    overlay[name] = value
            media = replace(self._state.media, **overlay)
        return self._commit(replace(self._state, media=media))

    def update_schedule(self, **partial: Any) -> None:
        """Merge schedule fields; always observable"""
        overlay = {}
        for key, value in partial.items():
            name = Schedule.field_for(key)
            if name is None:
                raise TypeError(f"Unknown schedule field: {key}")
            overlay[name] = value
        schedule = replace(self._state.schedule, **overlay)
        self._commit(replace(self._state, schedule=schedule), force=True)

    def register_display_subscriber(self, subscriber_id: str) -> bool:
        """Mark a subscriber as a rendering surface"""
        self._display_subscribers.add(subscriber_id)
        return self._sync_display_presence()

    def unregister_display_subscriber(self, subscriber_id: str) -> bool:
        """Drop a subscriber from the display set"""
        self._display_subscribers.discard(subscriber_id)
        return self._sync_display_presence()

    def is_display_subscriber(self, subscriber_id: str) -> bool:
        return subscriber_id in self._display_subscribers

    def _sync_display_presence(self) -> bool:
        present = bool(self._display_subscribers)
        return self._commit(replace(self._state, display_subscriber_present=present))
