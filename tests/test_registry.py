"""Tests for the pair registry."""

import pytest

from audio_pair_sync.errors import NotFoundError, ValidationError
from audio_pair_sync.models import InputSelector
from audio_pair_sync.sync import PairReady, PairRegistry, PairRemoved

from .conftest import pair_config


@pytest.fixture
def events(registry):
    received = []
    registry.subscribe(received.append)
    return received


class TestAdd:
    """Tests for adding pairs."""

    def test_add_applies_defaults(self, registry):
        """Optional flags default to enabled."""
        pair = registry.add(pair_config())
        assert pair.volume_sync_enabled is True
        assert pair.enabled is True
        assert pair.status == "ready"
        assert pair.last_activity is None
        assert len(registry) == 1

    def test_selector_is_lower_cased(self, registry):
        """Selectors are matched case-insensitively and stored lower-case."""
        pair = registry.add(pair_config(selector="AUX1"))
        assert pair.amp_input_selector is InputSelector.AUX1
        assert pair.to_record()["ampInputSelector"] == "aux1"

    def test_accepts_snake_case_keys(self, registry):
        pair = registry.add(
            {
                "name": "Cockpit",
                "source_device_ref": "sonos-2",
                "amp_device_ref": "fusion-2",
                "amp_input_selector": "usb",
            }
        )
        assert pair.source_device_ref == "sonos-2"
        assert pair.amp_input_selector is InputSelector.USB

    @pytest.mark.parametrize(
        "missing", ["name", "sourceDeviceRef", "ampDeviceRef", "ampInputSelector"]
    )
    def test_missing_field_rejected(self, registry, events, missing):
        """A missing required field leaves the registry unchanged."""
        config = pair_config()
        del config[missing]
        with pytest.raises(ValidationError) as exc_info:
            registry.add(config)
        assert exc_info.value.field == missing
        assert len(registry) == 0
        assert events == []

    def test_blank_name_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.add(pair_config(name="   "))

    def test_first_missing_field_reported(self, registry):
        """Fields are checked in a fixed order."""
        with pytest.raises(ValidationError) as exc_info:
            registry.add({"ampInputSelector": "aux1"})
        assert exc_info.value.field == "name"

    def test_invalid_selector_rejected(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            registry.add(pair_config(selector="aux9"))
        assert exc_info.value.field == "ampInputSelector"
        assert len(registry) == 0

    def test_non_boolean_flag_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.add(pair_config(enabled="yes"))

    def test_duplicate_name_rejected(self, registry):
        registry.add(pair_config())
        with pytest.raises(ValidationError) as exc_info:
            registry.add(pair_config(source="sonos-9", amp="fusion-9"))
        assert exc_info.value.field == "name"
        assert len(registry) == 1

    def test_enabled_add_announces_ready(self, registry, events):
        registry.add(pair_config())
        assert events == [PairReady("Salon", "sonos-1", "fusion-1")]

    def test_disabled_add_is_silent(self, registry, events):
        registry.add(pair_config(enabled=False))
        assert events == []

    def test_non_mapping_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.add(["Salon"])


class TestRemoveAndUpdate:
    """Tests for removing and updating pairs."""

    def test_remove_announces_removed(self, registry, events):
        registry.add(pair_config())
        events.clear()
        registry.remove("Salon")
        assert "Salon" not in registry
        assert events == [PairRemoved("Salon", "sonos-1", "fusion-1")]

    def test_remove_unknown_is_noop(self, registry, events):
        registry.remove("Nowhere")
        assert events == []

    def test_update_unknown_raises(self, registry):
        with pytest.raises(NotFoundError):
            registry.update("Nowhere", {"enabled": False})

    def test_disable_then_enable(self, registry, events):
        """Each enable transition emits exactly one event."""
        registry.add(pair_config())
        events.clear()

        registry.update("Salon", {"enabled": False})
        registry.update("Salon", {"enabled": False})
        registry.update("Salon", {"enabled": True})

        assert events == [
            PairRemoved("Salon", "sonos-1", "fusion-1"),
            PairReady("Salon", "sonos-1", "fusion-1"),
        ]

    def test_retarget_enabled_pair(self, registry, events):
        registry.add(pair_config())
        events.clear()
        registry.update("Salon", {"ampDeviceRef": "fusion-2"})
        assert events == [
            PairRemoved("Salon", "sonos-1", "fusion-1"),
            PairReady("Salon", "sonos-1", "fusion-2"),
        ]

    def test_update_selector_only_is_silent(self, registry, events):
        registry.add(pair_config())
        events.clear()
        pair = registry.update("Salon", {"ampInputSelector": "Bluetooth"})
        assert pair.amp_input_selector is InputSelector.BLUETOOTH
        assert events == []

    def test_rename_rejected(self, registry):
        registry.add(pair_config())
        with pytest.raises(ValidationError):
            registry.update("Salon", {"name": "Galley"})

    def test_unknown_field_rejected(self, registry):
        registry.add(pair_config())
        with pytest.raises(ValidationError) as exc_info:
            registry.update("Salon", {"colour": "blue"})
        assert exc_info.value.field == "colour"

    def test_invalid_update_leaves_pair_untouched(self, registry):
        registry.add(pair_config())
        with pytest.raises(ValidationError):
            registry.update("Salon", {"enabled": False, "ampInputSelector": "tape"})
        assert registry.get("Salon").enabled is True


class TestLookups:
    """Tests for device and input lookups."""

    def test_lookups_ignore_disabled_pairs(self, registry):
        registry.add(pair_config(enabled=False))
        assert registry.find_by_source_device("sonos-1") is None
        assert registry.find_by_amp_device("fusion-1") is None

    def test_lookup_returns_first_enabled(self, registry):
        registry.add(pair_config(name="Old", enabled=False))
        registry.add(pair_config(name="New"))
        assert registry.find_by_source_device("sonos-1").name == "New"
        assert registry.find_by_amp_device("fusion-1").name == "New"

    def test_by_input(self, registry):
        registry.add(pair_config(name="A", source="s1", amp="a1", selector="aux1"))
        registry.add(pair_config(name="B", source="s2", amp="a2", selector="usb"))
        registry.add(
            pair_config(name="C", source="s3", amp="a3", selector="aux1", enabled=False)
        )
        assert [p.name for p in registry.by_input("AUX1")] == ["A"]
        assert registry.by_input("tape") == []

    def test_enabled_only(self, registry):
        registry.add(pair_config(name="A", source="s1", amp="a1"))
        registry.add(pair_config(name="B", source="s2", amp="a2", enabled=False))
        assert [p.name for p in registry.enabled_only()] == ["A"]


class TestActivity:
    """Tests for activity and status bookkeeping."""

    def test_touch_activity_uses_clock(self, registry, clock):
        registry.add(pair_config())
        clock.advance(5)
        registry.touch_activity("Salon", "volume", 40)
        activity = registry.get("Salon").last_activity
        assert activity.timestamp == clock.now
        assert activity.type == "volume"
        assert activity.data == 40

    def test_touch_unknown_pair_is_ignored(self, registry):
        registry.touch_activity("Nowhere", "volume", 40)
        assert len(registry) == 0

    def test_set_status(self, registry):
        registry.add(pair_config())
        registry.set_status("Salon", "disabled")
        assert registry.get("Salon").status == "disabled"


class TestImportExport:
    """Tests for bulk configuration transfer."""

    def test_round_trip(self, registry, clock):
        registry.add(pair_config(name="A", source="s1", amp="a1"))
        registry.add(
            pair_config(
                name="B", source="s2", amp="a2", selector="fm", volumeSyncEnabled=False
            )
        )
        exported = registry.export_all()

        other = PairRegistry(clock=clock)
        other.import_all(exported)
        assert other.export_all() == exported

    def test_import_replaces_existing(self, registry, events):
        registry.add(pair_config(name="Old", source="s0", amp="a0"))
        events.clear()

        imported = registry.import_all([pair_config(name="New")])

        assert [p.name for p in imported] == ["New"]
        assert "Old" not in registry
        assert events == [
            PairRemoved("Old", "s0", "a0"),
            PairReady("New", "sonos-1", "fusion-1"),
        ]

    def test_import_announces_only_enabled_removals(self, registry, events):
        """Only pairs that were enabled are announced as removed."""
        registry.add(pair_config(name="Spare", source="s0", amp="a0", enabled=False))
        registry.add(pair_config(name="Live", source="s1", amp="a1"))
        events.clear()

        registry.import_all([])

        assert events == [PairRemoved("Live", "s1", "a1")]
        assert len(registry) == 0

    def test_build_pair_does_not_store(self, registry, events):
        pair = registry.build_pair(pair_config(selector="FM"))
        assert pair.amp_input_selector is InputSelector.FM
        assert len(registry) == 0
        assert events == []

    def test_import_skips_invalid_records(self, registry):
        imported = registry.import_all(
            [
                pair_config(name="Good"),
                {"name": "Bad"},
                "not a record",
                pair_config(name="Good", source="x", amp="y"),
            ]
        )
        assert [p.name for p in imported] == ["Good"]
        assert len(registry) == 1

    def test_import_non_list_rejected_atomically(self, registry, events):
        registry.add(pair_config())
        events.clear()
        with pytest.raises(ValidationError):
            registry.import_all({"devicePairs": []})
        assert "Salon" in registry
        assert events == []

    def test_listener_errors_do_not_break_mutation(self, registry):
        def broken(event):
            raise RuntimeError("listener down")

        registry.subscribe(broken)
        registry.add(pair_config())
        assert "Salon" in registry
