"""Tests for the bus publisher and control listener."""

import pytest

from audio_pair_sync.bus import BusControlListener, BusPublisher
from audio_pair_sync.sync import VolumeAdjustRequested


def _paths(delta):
    return {value["path"]: value["value"] for value in delta["updates"][0]["values"]}


@pytest.fixture
def sent():
    return []


@pytest.fixture
def bus(clock, sent):
    publisher = BusPublisher(device_instance=3, clock=clock)
    publisher.add_sink(sent.append)
    return publisher


class TestBusPublisher:
    """Tests for BusPublisher."""

    def test_publish_status_builds_delta(self, bus, sent):
        bus.publish_status("Salon", "volume", 0.5)

        assert len(sent) == 1
        delta = sent[0]
        assert delta["context"] == "vessels.self"
        update = delta["updates"][0]
        assert update["source"] == {"label": "audio-pair-sync.3"}
        assert update["timestamp"].endswith("Z")
        assert _paths(delta) == {"entertainment.audio.Salon.volume": 0.5}

    def test_track_is_flattened(self, bus, sent):
        bus.publish_status("Salon", "currentTrack", {"title": "Song", "artist": "Band"})
        assert _paths(sent[0]) == {
            "entertainment.audio.Salon.currentTrack.title": "Song",
            "entertainment.audio.Salon.currentTrack.artist": "Band",
        }

    def test_disabled_publisher_drops_everything(self, clock, sent):
        publisher = BusPublisher(enabled=False, clock=clock)
        publisher.add_sink(sent.append)
        publisher.publish_status("Salon", "volume", 0.5)
        assert sent == []
        assert publisher.send_heartbeats() == 0

    def test_heartbeat_only_for_recent_pairs(self, bus, sent, clock):
        bus.publish_status("Old", "status", "ready")
        clock.advance(31)
        bus.publish_status("New", "status", "ready")
        sent.clear()

        assert bus.send_heartbeats() == 1
        paths = _paths(sent[0])
        assert paths["entertainment.audio.New.status"] == "online"
        assert "entertainment.audio.New.lastSeen" in paths

    def test_forget_stops_heartbeats(self, bus):
        bus.publish_status("Salon", "status", "ready")
        bus.forget("Salon")
        assert bus.send_heartbeats() == 0

    def test_failing_sink_does_not_block_others(self, bus, sent):
        def broken(delta):
            raise RuntimeError("socket closed")

        bus.add_sink(broken)
        bus.publish_status("Salon", "volume", 0.1)
        bus.publish_status("Salon", "volume", 0.2)
        assert len(sent) == 2

    def test_recent_messages_bounded(self, bus):
        for index in range(60):
            bus.publish_status("Salon", "volume", index / 100)
        assert len(bus.recent) == 50
        assert bus.diagnostics()["recentMessages"] == 50

    async def test_start_and_stop(self, bus):
        await bus.start()
        assert bus.diagnostics()["heartbeat"] is True
        await bus.stop()
        assert bus.diagnostics()["heartbeat"] is False


class TestBusControlListener:
    """Tests for BusControlListener."""

    def _delta(self, path, value):
        return {"updates": [{"values": [{"path": path, "value": value}]}]}

    def test_volume_change_submitted(self):
        submitted = []
        listener = BusControlListener(submitted.append)

        accepted = listener.handle_delta(
            self._delta("entertainment.audio.Salon.controls.volume", {"change": -2})
        )

        assert accepted == 1
        assert submitted == [VolumeAdjustRequested("Salon", -2)]
        assert listener.handled == 1

    def test_pair_name_with_dots(self):
        submitted = []
        listener = BusControlListener(submitted.append)
        listener.handle_delta(
            self._delta("entertainment.audio.Deck.Aft.controls.volume", {"change": 1})
        )
        assert submitted == [VolumeAdjustRequested("Deck.Aft", 1)]

    @pytest.mark.parametrize(
        "path,value",
        [
            ("entertainment.audio.Salon.controls.mute", True),
            ("entertainment.audio.Salon.controls.volume", 5),
            ("entertainment.audio.Salon.controls.volume", {"change": True}),
            ("entertainment.audio.Salon.volume", {"change": 1}),
            ("navigation.speedOverGround", 3.2),
        ],
    )
    def test_ignored_values(self, path, value):
        submitted = []
        listener = BusControlListener(submitted.append)
        assert listener.handle_delta(self._delta(path, value)) == 0
        assert submitted == []

    def test_malformed_delta(self):
        listener = BusControlListener(lambda event: None)
        assert listener.handle_delta("nope") == 0
        assert listener.handle_delta({"updates": ["x", {"values": None}]}) == 0
