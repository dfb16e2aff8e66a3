"""Tests for the pair service."""

import pytest

from audio_pair_sync.errors import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from audio_pair_sync.sync import PairService

from .conftest import pair_config


@pytest.fixture
def service(registry, sync_router, source, amp):
    return PairService(registry, sync_router, source, amp)


class TestCrud:
    """Tests for create, update and delete."""

    async def test_create_and_get(self, service):
        created = service.create_pair(pair_config())
        assert created["name"] == "Salon"
        assert service.get_pair("Salon")["ampInputSelector"] == "aux1"
        assert [p["name"] for p in service.list_pairs()] == ["Salon"]

    async def test_create_conflict(self, service):
        service.create_pair(pair_config())
        with pytest.raises(ConflictError) as exc_info:
            service.create_pair(pair_config(name="Other", amp="fusion-2"))
        assert exc_info.value.conflicts == [
            "Source device sonos-1 is already paired with Salon"
        ]
        assert len(service.registry) == 1

    async def test_create_disabled_skips_conflict_check(self, service):
        service.create_pair(pair_config())
        service.create_pair(pair_config(name="Spare", enabled=False))
        assert len(service.registry) == 2

    async def test_create_invalid(self, service):
        with pytest.raises(ValidationError):
            service.create_pair({"name": "Salon"})

    async def test_invalid_flag_reported_before_conflicts(self, service):
        """A malformed field wins over a device conflict."""
        service.create_pair(pair_config())
        with pytest.raises(ValidationError) as exc_info:
            service.create_pair(pair_config(name="Other", enabled="false"))
        assert exc_info.value.field == "enabled"
        assert len(service.registry) == 1

    async def test_duplicate_name_reported_before_conflicts(self, service):
        service.create_pair(pair_config())
        with pytest.raises(ValidationError) as exc_info:
            service.create_pair(pair_config())
        assert exc_info.value.field == "name"

    async def test_get_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.get_pair("Nowhere")

    async def test_enable_conflicting_pair_rejected(self, service):
        service.create_pair(pair_config())
        service.create_pair(pair_config(name="Spare", enabled=False))
        with pytest.raises(ConflictError):
            service.update_pair("Spare", {"enabled": True})
        assert service.registry.get("Spare").enabled is False

    async def test_retarget_checks_other_pairs_only(self, service):
        service.create_pair(pair_config())
        service.create_pair(pair_config(name="Cockpit", source="sonos-2", amp="fusion-2"))

        updated = service.update_pair("Salon", {"ampDeviceRef": "fusion-3"})
        assert updated["ampDeviceRef"] == "fusion-3"

        with pytest.raises(ConflictError):
            service.update_pair("Salon", {"source_device_ref": "sonos-2"})

    async def test_update_flags(self, service):
        service.create_pair(pair_config())
        updated = service.update_pair("Salon", {"volumeSyncEnabled": False})
        assert updated["volumeSyncEnabled"] is False

    async def test_delete(self, service):
        service.create_pair(pair_config())
        service.delete_pair("Salon")
        assert service.list_pairs() == []
        with pytest.raises(NotFoundError):
            service.delete_pair("Salon")


class TestProbe:
    """Tests for test_pair."""

    async def test_both_devices_respond(self, service):
        service.create_pair(pair_config())
        result = await service.test_pair("Salon")
        assert result == {
            "success": True,
            "source": {"connected": True, "state": "playing"},
            "amp": {"connected": True},
        }

    async def test_source_failure_reported(self, service, source):
        service.create_pair(pair_config())
        source.get_playback_state.side_effect = CollaboratorError("timeout")

        result = await service.test_pair("Salon")

        assert result["success"] is False
        assert result["source"]["connected"] is False
        assert "source: timeout" in result["error"]

    async def test_amp_not_responding(self, service, amp):
        service.create_pair(pair_config())
        amp.test_connection.return_value = False

        result = await service.test_pair("Salon")

        assert result["success"] is False
        assert result["error"] == "One or more devices are not responding"

    async def test_unknown_pair(self, service):
        with pytest.raises(NotFoundError):
            await service.test_pair("Nowhere")


class TestConfigTransfer:
    """Tests for export and import."""

    async def test_export(self, service):
        service.create_pair(pair_config())
        assert service.export_config() == {
            "devicePairs": [
                {
                    "name": "Salon",
                    "sourceDeviceRef": "sonos-1",
                    "ampDeviceRef": "fusion-1",
                    "ampInputSelector": "aux1",
                    "volumeSyncEnabled": True,
                    "enabled": True,
                }
            ]
        }

    async def test_import_wrapped_and_bare(self, service):
        result = service.import_config({"devicePairs": [pair_config(), {"name": "x"}]})
        assert result == {"imported": 1, "skipped": 1}

        result = service.import_config([pair_config(name="Other")])
        assert result == {"imported": 1, "skipped": 0}
        assert [p["name"] for p in service.list_pairs()] == ["Other"]

    async def test_import_rejects_non_list(self, service):
        service.create_pair(pair_config())
        with pytest.raises(ValidationError):
            service.import_config({"devicePairs": "nope"})
        assert len(service.registry) == 1


class TestReporting:
    """Tests for statistics, diagnostics and state."""

    async def test_pair_state(self, service):
        service.create_pair(pair_config())
        assert service.pair_state("Salon") == "ready"
        with pytest.raises(NotFoundError):
            service.pair_state("Nowhere")

    async def test_diagnostics_lists_collaborators(self, service):
        report = service.diagnostics()
        assert set(report["collaborators"]) == {"source", "amp"}
        assert report["router"]["running"] is True

    async def test_statistics(self, service):
        service.create_pair(pair_config())
        assert service.statistics()["totalPairs"] == 1
