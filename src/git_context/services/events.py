"""
Event plumbing shared by the repository layer and the context tracker.

``EventEmitter`` is the callback registry, ``Debouncer`` collapses bursts of
notifications into one trailing delivery, and the ``TrackerEvent`` variants
are the single message type the context tracker consumes.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Protocol, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventEmitter(Generic[T]):
    """Callback registry for one kind of event."""

    def __init__(self, name: str = "event"):
        self.name = name
        self._callbacks: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def fire(self, event: T) -> None:
        """Call every subscriber; a failing subscriber never stops the others."""
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"{self.name} callback failed: {e}")

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)


class Debouncer(Generic[T]):
    """Deliver only the latest value once ``delay`` seconds pass without a new one.

    Must be triggered from the event loop thread; watchdog threads use
    :meth:`trigger_threadsafe`.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[T], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.delay = delay
        self.callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._value: Optional[T] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def trigger(self, value: T) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._value = value
        self._handle = self._loop.call_later(self.delay, self._fire)

    def trigger_threadsafe(self, value: T) -> None:
        if self._loop is None:
            raise RuntimeError("Debouncer has no event loop bound")
        self._loop.call_soon_threadsafe(self.trigger, value)

    def flush(self) -> None:
        """Deliver a pending value immediately."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._value = None

    def _fire(self) -> None:
        value = self._value
        self._handle = None
        self._value = None
        self.callback(value)  # type: ignore[arg-type]


@dataclass(frozen=True)
class EditorHandle:
    """Opaque identifier of an editor; never an owned reference to it."""

    editor_id: str


@dataclass(frozen=True)
class DocumentSnapshot:
    """What the tracker needs to know about an editor's document."""

    path: str
    is_dirty: bool = False
    sha: Optional[str] = None


class EditorAccessor(Protocol):
    """Host-side lookup of editors and their documents."""

    def active_editor(self) -> Optional[EditorHandle]: ...

    def get_document(self, editor: EditorHandle) -> Optional[DocumentSnapshot]: ...


@dataclass(frozen=True)
class EditorChanged:
    editor: Optional[EditorHandle]
    force: bool = False


@dataclass(frozen=True)
class DocumentChanged:
    document: DocumentSnapshot


@dataclass(frozen=True)
class RepositoryChanged:
    repo_path: str
    changes: frozenset = frozenset()


@dataclass(frozen=True)
class RepositoriesChanged:
    pass


@dataclass(frozen=True)
class BlameFailed:
    key: str


TrackerEvent = Union[
    EditorChanged, DocumentChanged, RepositoryChanged, RepositoriesChanged, BlameFailed
]
