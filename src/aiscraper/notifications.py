from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import secrets
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Union

from aiscraper.api_client import ApiResult
from aiscraper.errors import describe_error, describe_failure


logger = logging.getLogger("aiscraper.notifications")


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    LOADING = "loading"
    CUSTOM = "custom"


# None means "no auto-expiry".
DEFAULT_DURATIONS_MS: dict[NotificationKind, int | None] = {
    NotificationKind.SUCCESS: 4000,
    NotificationKind.ERROR: 6000,
    NotificationKind.WARNING: 5000,
    NotificationKind.INFO: 4000,
    NotificationKind.LOADING: None,
    NotificationKind.CUSTOM: 5000,
}

_DEFAULT = object()

# Attempts at drawing a fresh id before the factory is considered exhausted.
MAX_ID_ATTEMPTS = 100
# Recently retired ids that are not handed out again.
RETIRED_ID_HISTORY = 1000


@dataclass(frozen=True)
class NotificationAction:
    label: str
    callback: Callable[[], Any]


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    title: str
    created_at: datetime
    message: str | None = None
    read: bool = False
    persistent: bool = False
    duration_ms: int | None = None
    action: NotificationAction | None = None

    @property
    def expires(self) -> bool:
        return not self.persistent and self.duration_ms is not None


@dataclass(frozen=True)
class LoadingMessages:
    loading: str
    success: str
    error: str | None = None


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]
Listener = Callable[[tuple[Notification, ...]], None]
Operation = Union[Awaitable[Any], Callable[[], Awaitable[Any]]]


def loop_scheduler(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay_seconds, callback)


def _default_id_factory() -> Callable[[], str]:
    counter = itertools.count(1)

    def _next() -> str:
        return f"notification-{next(counter)}-{secrets.token_hex(5)}"

    return _next


def _normalize_duration(value: int | None) -> int | None:
    if value is None:
        return None
    value = int(value)
    if value < 0:
        raise ValueError("duration_ms must be non-negative")
    # Zero means "never expire".
    return value or None


def _coerce_kind(kind: NotificationKind | str) -> NotificationKind:
    return kind if isinstance(kind, NotificationKind) else NotificationKind(kind)


class NotificationManager:
    """In-memory notification registry with auto-expiry and read tracking.

    Entries are kept newest-first. All mutations are synchronous; expiry runs
    on timers obtained from `scheduler` (the running asyncio loop by default),
    and a timer is cancelled whenever its entry leaves the registry.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._scheduler = scheduler or loop_scheduler
        self._id_factory = id_factory or _default_id_factory()
        self._entries: list[Notification] = []
        self._timers: dict[str, TimerHandle] = {}
        self._listeners: list[Listener] = []
        self._retired_ids: deque[str] = deque(maxlen=RETIRED_ID_HISTORY)

    # -- read side ---------------------------------------------------------

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, notification_id: str) -> Notification | None:
        for entry in self._entries:
            if entry.id == notification_id:
                return entry
        return None

    def get_notifications_by_type(self, kind: NotificationKind | str) -> list[Notification]:
        kind = _coerce_kind(kind)
        return [n for n in self._entries if n.kind is kind]

    def get_unread_notifications(self) -> list[Notification]:
        return [n for n in self._entries if not n.read]

    @property
    def unread_count(self) -> int:
        return len(self.get_unread_notifications())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- creation ----------------------------------------------------------

    def notify(
        self,
        kind: NotificationKind | str,
        title: str,
        message: str | None = None,
        *,
        persistent: bool = False,
        duration_ms: Any = _DEFAULT,
        action: NotificationAction | None = None,
    ) -> str:
        kind = _coerce_kind(kind)
        if not title or not title.strip():
            raise ValueError("title is required")
        if duration_ms is _DEFAULT:
            duration_ms = DEFAULT_DURATIONS_MS[kind]

        notification_id = self._new_id()
        entry = Notification(
            id=notification_id,
            kind=kind,
            title=title,
            message=message,
            created_at=datetime.now(timezone.utc),
            persistent=bool(persistent),
            duration_ms=_normalize_duration(duration_ms),
            action=action,
        )
        # Scheduling can fail (no running loop); do it before the registry changes.
        handle = self._schedule(entry)
        self._entries.insert(0, entry)
        if handle is not None:
            self._timers[notification_id] = handle
        logger.debug("notification %s created (%s): %s", notification_id, kind.value, title)
        self._emit()
        return notification_id

    def success(self, title: str, message: str | None = None, **overrides: Any) -> str:
        return self.notify(NotificationKind.SUCCESS, title, message, **overrides)

    def error(self, title: str, message: str | None = None, **overrides: Any) -> str:
        return self.notify(NotificationKind.ERROR, title, message, **overrides)

    def warning(self, title: str, message: str | None = None, **overrides: Any) -> str:
        return self.notify(NotificationKind.WARNING, title, message, **overrides)

    def info(self, title: str, message: str | None = None, **overrides: Any) -> str:
        return self.notify(NotificationKind.INFO, title, message, **overrides)

    def loading(self, title: str, message: str | None = None) -> str:
        return self.notify(NotificationKind.LOADING, title, message, persistent=True)

    # -- removal -----------------------------------------------------------

    def dismiss(self, notification_id: str) -> None:
        before = len(self._entries)
        self._entries = [n for n in self._entries if n.id != notification_id]
        self._disarm(notification_id)
        if len(self._entries) != before:
            self._retired_ids.append(notification_id)
            self._emit()

    remove = dismiss

    def dismiss_all(self) -> None:
        for notification_id in list(self._timers):
            self._disarm(notification_id)
        had_entries = bool(self._entries)
        self._retired_ids.extend(entry.id for entry in self._entries)
        self._entries = []
        if had_entries:
            self._emit()

    remove_all = dismiss_all

    def close(self) -> None:
        for notification_id in list(self._timers):
            self._disarm(notification_id)

    # -- read state --------------------------------------------------------

    def mark_as_read(self, notification_id: str) -> None:
        changed = False
        for index, entry in enumerate(self._entries):
            if entry.id == notification_id and not entry.read:
                self._entries[index] = replace(entry, read=True)
                changed = True
        if changed:
            self._emit()

    def mark_all_as_read(self) -> None:
        if all(entry.read for entry in self._entries):
            return
        self._entries = [entry if entry.read else replace(entry, read=True) for entry in self._entries]
        self._emit()

    # -- updates -----------------------------------------------------------

    def update_notification(self, notification_id: str, **fields: Any) -> None:
        """Merge `fields` into an existing entry; unknown ids are ignored.

        Accepted fields: kind, title, message, persistent, duration_ms, action,
        read. `id` and `created_at` never change. When `kind` changes, any of
        `duration_ms`/`persistent` not given revert to the new kind's defaults
        and the expiry timer is re-armed from now.
        """
        allowed = {"kind", "title", "message", "persistent", "duration_ms", "action", "read"}
        unknown = set(fields) - allowed
        if unknown:
            raise TypeError(f"unsupported notification fields: {sorted(unknown)}")
        if fields.get("read") is False:
            raise ValueError("notifications cannot be marked unread")
        if "title" in fields and (not fields["title"] or not str(fields["title"]).strip()):
            raise ValueError("title is required")

        index = next((i for i, n in enumerate(self._entries) if n.id == notification_id), None)
        if index is None:
            return
        current = self._entries[index]

        changes = dict(fields)
        if "kind" in changes:
            changes["kind"] = _coerce_kind(changes["kind"])
            new_kind = changes["kind"]
            if new_kind is NotificationKind.LOADING and current.kind is not NotificationKind.LOADING:
                raise ValueError("cannot transition back to loading; create a new loading notification")
            if new_kind is not current.kind:
                changes.setdefault("duration_ms", DEFAULT_DURATIONS_MS[new_kind])
                changes.setdefault("persistent", False)
        if "duration_ms" in changes:
            changes["duration_ms"] = _normalize_duration(changes["duration_ms"])
        if "persistent" in changes:
            changes["persistent"] = bool(changes["persistent"])

        updated = replace(current, **changes)
        if {"kind", "duration_ms", "persistent"} & set(changes):
            handle = self._schedule(updated)
            self._disarm(notification_id)
            if handle is not None:
                self._timers[notification_id] = handle
        self._entries[index] = updated
        self._emit()

    # -- composite ---------------------------------------------------------

    async def with_loading(self, operation: Operation, messages: LoadingMessages) -> Any:
        """Show a loading entry while `operation` runs, then report its outcome.

        Failures are reported as an error entry and re-raised. A failed
        `ApiResult` is reported the same way and returned unchanged.
        """
        loading_id = self.loading(messages.loading)
        try:
            result = await resolve_operation(operation)
        except Exception as exc:
            self.dismiss(loading_id)
            self.error(messages.error or "Operation failed", describe_failure(exc))
            raise
        except BaseException:
            self.dismiss(loading_id)
            raise

        self.dismiss(loading_id)
        if isinstance(result, ApiResult) and not result.ok and result.error is not None:
            self.error(messages.error or "Operation failed", describe_error(result.error))
        else:
            self.success(messages.success)
        return result

    # -- internals ---------------------------------------------------------

    def _new_id(self) -> str:
        live = {entry.id for entry in self._entries}
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in live and candidate not in self._retired_ids:
                return candidate
        raise RuntimeError(f"id factory produced no unused id in {MAX_ID_ATTEMPTS} attempts")

    def _schedule(self, entry: Notification) -> TimerHandle | None:
        if not entry.expires or entry.duration_ms is None:
            return None
        notification_id = entry.id

        def _expire() -> None:
            self._timers.pop(notification_id, None)
            logger.debug("notification %s expired", notification_id)
            self.dismiss(notification_id)

        return self._scheduler(entry.duration_ms / 1000.0, _expire)

    def _disarm(self, notification_id: str) -> None:
        handle = self._timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

    def _emit(self) -> None:
        snapshot = self.notifications
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("notification listener failed")


async def resolve_operation(operation: Operation) -> Any:
    if inspect.isawaitable(operation):
        return await operation
    return await operation()
