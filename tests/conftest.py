"""Pytest configuration and fixtures for WatchRoom tests."""

from typing import Any, AsyncGenerator, Callable, Sequence
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from watchroom.config import Settings
from watchroom.main import create_app
from watchroom.models.room import RoomCreate, RoomJoin
from watchroom.services.event_router import EventRouter


class ManualTimer:
    """Timer handle of the virtual-time scheduler."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancel_count = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_count > 0

    def cancel(self) -> None:
        self.cancel_count += 1


class ManualScheduler:
    """Scheduler whose clock only moves when a test advances it."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.timers: list[ManualTimer] = []
        self.fired: list[ManualTimer] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.now = max(self.now, timer.when)
            self.fired.append(timer)
            timer.callback()
        self.now = target

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]


class RecordingEmitter:
    """Emitter that records every outbound event per connection."""

    def __init__(self):
        self.calls: list[tuple[list[str], str, Any]] = []
        self.sent: list[tuple[str, str, Any]] = []

    def emit(self, connection_ids: Sequence[str], event: str, data: Any = None) -> None:
        self.calls.append((list(connection_ids), event, data))
        for connection_id in connection_ids:
            self.sent.append((connection_id, event, data))

    def received(self, connection_id: str, event: str | None = None) -> list[Any]:
        """Payloads delivered to a connection, optionally for one event."""
        return [
            data
            for cid, name, data in self.sent
            if cid == connection_id and (event is None or name == event)
        ]

    def broadcasts(self, event: str) -> list[tuple[list[str], Any]]:
        """Every emit call for an event, including those with no recipients."""
        return [(ids, data) for ids, name, data in self.calls if name == event]

    def clear(self) -> None:
        self.calls.clear()
        self.sent.clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with the default lifecycle timings."""
    return Settings(
        grace_period_seconds=30,
        owner_timeout_seconds=300,
        cleanup_interval_seconds=30,
        max_chat_length=200,
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def event_router(
    emitter: RecordingEmitter,
    scheduler: ManualScheduler,
    settings: Settings,
) -> EventRouter:
    """Event router wired to virtual time and a recording emitter."""
    return EventRouter(emitter, scheduler=scheduler, settings=settings)


@pytest_asyncio.fixture
async def movie_room(event_router: EventRouter, emitter: RecordingEmitter) -> dict:
    """A public room owned by "owner" with members "bob" and "carol".

    Connection ids double as member ids for plain joins.
    """
    created = await event_router.create_room(
        "owner",
        RoomCreate(
            name="Friday Night Movies",
            description="Weekly watch party",
            is_public=True,
            user_name="Alice",
        ),
    )
    room_id = created.room["id"]
    owner_token = created.room["ownerToken"]

    await event_router.join_room("bob", RoomJoin(room_id=room_id, user_name="Bob"))
    await event_router.join_room("carol", RoomJoin(room_id=room_id, user_name="Carol"))
    emitter.clear()

    return {
        "id": room_id,
        "owner_token": owner_token,
    }


@pytest.fixture
def app(settings: Settings):
    """Fresh application instance per test."""
    return create_app(settings)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
