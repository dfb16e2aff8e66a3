"""Test fixtures for audio_pair_sync tests."""

from unittest.mock import AsyncMock

import pytest

from audio_pair_sync.sync import PairRegistry, SyncRouter


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSource:
    """Source collaborator recording tracking calls, with mocked commands."""

    def __init__(self):
        self.tracked = set()
        self.set_volume = AsyncMock()
        self.adjust_volume = AsyncMock()
        self.get_playback_state = AsyncMock(return_value="playing")

    def add_tracked(self, ref):
        self.tracked.add(ref)

    def remove_tracked(self, ref):
        self.tracked.discard(ref)

    def diagnostics(self):
        return {"trackedDevices": sorted(self.tracked)}


class FakeAmp:
    """Amp collaborator with a 0-40 volume range."""

    max_volume = 40

    def __init__(self):
        self.tracked = set()
        self.switch_input = AsyncMock()
        self.set_volume = AsyncMock()
        self.test_connection = AsyncMock(return_value=True)

    def add_tracked(self, ref):
        self.tracked.add(ref)

    def remove_tracked(self, ref):
        self.tracked.discard(ref)

    def diagnostics(self):
        return {"trackedDevices": sorted(self.tracked)}


class FakePublisher:
    def __init__(self):
        self.published = []

    def publish_status(self, pair_name, field, value):
        self.published.append((pair_name, field, value))


def pair_config(name="Salon", source="sonos-1", amp="fusion-1", selector="aux1", **extra):
    config = {
        "name": name,
        "sourceDeviceRef": source,
        "ampDeviceRef": amp,
        "ampInputSelector": selector,
    }
    config.update(extra)
    return config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return PairRegistry(clock=clock)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def amp():
    return FakeAmp()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
async def sync_router(registry, source, amp, publisher):
    """A started router; stopped after the test."""
    router = SyncRouter(registry, source, amp, publisher)
    await router.start()
    yield router
    await router.stop()
