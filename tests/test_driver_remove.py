"""
Tests for Machine Removal
=========================

Tests the stop -> wait -> delete server -> delete storage sequence.
"""

import pytest

from upcloud_machine.driver import UpCloudDriver
from upcloud_machine.errors import DriverError, WaitTimeoutError
from upcloud_machine.providers.base import ProviderError

from fakes import make_server, options, SERVER_UUID

DISKS = ("disk-a", "disk-b", "disk-c")


@pytest.fixture
def running_server(fake_client):
    """Server that is started, then stopping, then stopped."""
    fake_client.snapshots = [
        make_server(state="started", disks=DISKS),
        make_server(state="started", disks=DISKS),
        make_server(state="maintenance", disks=DISKS),
        make_server(state="stopped", disks=DISKS),
    ]
    return fake_client


class TestRemove:
    """Test teardown sequencing."""

    def test_full_sequence(self, created_driver, running_server, sleeps):
        created_driver.remove()

        assert running_server.calls == [
            ("get_server_details", SERVER_UUID),
            ("stop_server", SERVER_UUID, "hard"),
            ("get_server_details", SERVER_UUID),
            ("get_server_details", SERVER_UUID),
            ("get_server_details", SERVER_UUID),
            ("delete_server", SERVER_UUID),
            ("delete_storage", "disk-a"),
            ("delete_storage", "disk-b"),
            ("delete_storage", "disk-c"),
        ]
        assert sleeps == [1, 2]

    def test_record_cleared(self, created_driver, running_server):
        created_driver.remove()
        assert created_driver.record.server_uuid == ""
        assert created_driver.record.ip_address == ""

    def test_already_stopped_skips_stop(self, created_driver, fake_client):
        fake_client.snapshots = [make_server(state="stopped", disks=DISKS)]

        created_driver.remove()

        assert "stop_server" not in fake_client.method_calls()
        assert fake_client.method_calls()[-4:] == [
            "delete_server", "delete_storage", "delete_storage", "delete_storage",
        ]

    def test_storage_failure_stops_remaining_deletes(self, created_driver, running_server):
        running_server.fail("delete_storage", "disk-b")

        with pytest.raises(ProviderError):
            created_driver.remove()

        deleted = [call[1] for call in running_server.calls if call[0] == "delete_storage"]
        assert deleted == ["disk-a", "disk-b"]
        # Partially torn down; the record is kept so the operator can see what remained
        assert created_driver.record.server_uuid == SERVER_UUID

    def test_server_delete_failure_keeps_storage(self, created_driver, running_server):
        running_server.fail("delete_server")

        with pytest.raises(ProviderError):
            created_driver.remove()
        assert "delete_storage" not in running_server.method_calls()

    def test_stop_failure_aborts(self, created_driver, running_server):
        running_server.fail("stop_server")

        with pytest.raises(ProviderError):
            created_driver.remove()
        assert running_server.method_calls() == ["get_server_details", "stop_server"]

    def test_details_failure_aborts(self, created_driver, fake_client):
        fake_client.fail("get_server_details")

        with pytest.raises(ProviderError):
            created_driver.remove()
        assert fake_client.method_calls() == ["get_server_details"]

    def test_stop_wait_times_out(self, tmp_path, fake_client):
        driver = UpCloudDriver(
            "web1", str(tmp_path),
            client_factory=lambda config: fake_client,
            sleep=lambda s: None,
            max_poll_attempts=3,
        )
        driver.set_config_from_flags(options())
        driver.record.server_uuid = SERVER_UUID
        fake_client.snapshots = [make_server(state="started", disks=DISKS)]

        with pytest.raises(WaitTimeoutError):
            driver.remove()
        assert "delete_server" not in fake_client.method_calls()

    def test_second_remove_fails(self, created_driver, running_server):
        created_driver.remove()
        with pytest.raises(DriverError):
            created_driver.remove()

    def test_no_server(self, driver, fake_client):
        with pytest.raises(DriverError):
            driver.remove()
        assert fake_client.calls == []
