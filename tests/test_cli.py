"""
Tests for the Command-Line Host
===============================

Drives whole lifecycles through main() against the fake provider.
"""

import pytest
from unittest.mock import patch

from upcloud_machine.cli import main
from upcloud_machine.config import NetworkMode
from upcloud_machine.store import MachineStore

from fakes import make_server, SERVER_UUID


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("upcloud_machine.cli.configure_logging"):
        yield


@pytest.fixture
def run(tmp_path, driver_kwargs):
    """Run the CLI against a temporary store and the fake provider."""
    def _run(*argv, environ=None, **extra_kwargs):
        kwargs = dict(driver_kwargs, **extra_kwargs)
        return main(["--storage-path", str(tmp_path)] + list(argv), driver_kwargs=kwargs, environ=environ or {})
    return _run


@pytest.fixture
def store(tmp_path):
    return MachineStore(str(tmp_path))


@pytest.fixture
def public_server(fake_client):
    fake_client.snapshots = [make_server(addresses=[("public", "IPv4", "94.237.1.2")], disks=("disk-a",))]
    return fake_client


CREDENTIALS = ("--upcloud-user", "api-user", "--upcloud-passwd", "api-pass")


class TestCreate:
    """Test the create command."""

    def test_create_saves_record(self, run, store, public_server, fake_keygen, capsys):
        assert run("create", "web1", *CREDENTIALS) == 0

        assert capsys.readouterr().out.strip() == "94.237.1.2"
        driver = store.load("web1")
        assert driver.record.server_uuid == SERVER_UUID
        assert driver.record.ip_address == "94.237.1.2"
        assert public_server.method_calls()[:2] == ["list_zones", "create_server"]

    def test_credentials_from_environment(self, run, store, public_server, fake_keygen):
        environ = {"UPCLOUD_USER": "env-user", "UPCLOUD_PASSWD": "env-pass", "UPCLOUD_ZONE": "fi-hel1"}
        assert run("create", "web1", environ=environ) == 0
        assert store.load("web1").config.zone == "fi-hel1"

    def test_private_network_flag(self, run, store, public_server, fake_keygen):
        public_server.snapshots = [make_server(addresses=[("private", "IPv4", "10.1.0.5")])]
        assert run("create", "web1", *CREDENTIALS, "--upcloud-use-private-network-only") == 0

        assert store.load("web1").record.ip_address == "10.1.0.5"
        assert [ip.access for ip in public_server.created[0].ip_addresses] == ["private"]

    def test_negated_flag_overrides_environment(self, run, store, public_server, fake_keygen):
        environ = {"UPCLOUD_USE_PRIVATE_NETWORK": "true"}
        assert run("create", "web1", *CREDENTIALS, "--no-upcloud-use-private-network", environ=environ) == 0

        assert store.load("web1").config.network_mode is NetworkMode.PUBLIC
        assert store.load("web1").record.ip_address == "94.237.1.2"

    def test_missing_credentials(self, run, store, fake_client):
        assert run("create", "web1") == 1
        assert not store.exists("web1")
        assert fake_client.calls == []

    def test_invalid_zone(self, run, store, fake_client, fake_keygen):
        assert run("create", "web1", *CREDENTIALS, "--upcloud-zone", "mars-1") == 1
        assert "create_server" not in fake_client.method_calls()
        assert not store.exists("web1")

    def test_timeout_keeps_record(self, run, store, fake_client, fake_keygen):
        fake_client.snapshots = [make_server(state="maintenance")]
        assert run("create", "web1", *CREDENTIALS, max_poll_attempts=2) == 1
        assert store.load("web1").record.server_uuid == SERVER_UUID

    @pytest.mark.parametrize("name", ["..", ".", "../evil"])
    def test_invalid_name(self, run, tmp_path, fake_client, name):
        assert run("create", name, *CREDENTIALS) == 1
        assert fake_client.calls == []
        assert not (tmp_path / "config.json").exists()

    def test_existing_machine(self, run, public_server, fake_keygen):
        assert run("create", "web1", *CREDENTIALS) == 0
        assert run("create", "web1", *CREDENTIALS) == 1


class TestManage:
    """Test commands against an existing machine."""

    @pytest.fixture(autouse=True)
    def created(self, run, public_server, fake_keygen, capsys):
        assert run("create", "web1", *CREDENTIALS) == 0
        capsys.readouterr()
        public_server.calls.clear()

    def test_state(self, run, capsys):
        assert run("state", "web1") == 0
        assert capsys.readouterr().out.strip() == "Running"

    def test_state_provider_error(self, run, fake_client, capsys):
        fake_client.fail("get_server_details")
        assert run("state", "web1") == 1
        assert capsys.readouterr().out.strip() == "Error"

    def test_url(self, run, capsys):
        assert run("url", "web1") == 0
        assert capsys.readouterr().out.strip() == "tcp://94.237.1.2:2376"

    def test_ip(self, run, capsys):
        assert run("ip", "web1") == 0
        assert capsys.readouterr().out.strip() == "94.237.1.2"

    @pytest.mark.parametrize("command,expected", [
        ("start", ("start_server", SERVER_UUID)),
        ("stop", ("stop_server", SERVER_UUID, "soft")),
        ("kill", ("stop_server", SERVER_UUID, "hard")),
        ("restart", ("restart_server", SERVER_UUID)),
    ])
    def test_power_commands(self, run, fake_client, command, expected):
        assert run(command, "web1") == 0
        assert fake_client.calls == [expected]

    def test_rm(self, run, store, fake_client):
        fake_client.snapshots = [make_server(state="stopped", disks=("disk-a",))]

        assert run("rm", "web1") == 0

        assert fake_client.method_calls()[-2:] == ["delete_server", "delete_storage"]
        assert not store.exists("web1")

    def test_rm_failure_keeps_record(self, run, store, fake_client):
        fake_client.snapshots = [make_server(state="stopped", disks=("disk-a",))]
        fake_client.fail("delete_server")

        assert run("rm", "web1") == 1
        assert store.exists("web1")

    def test_rm_force(self, run, store, fake_client):
        fake_client.fail("get_server_details")
        assert run("rm", "--force", "web1") == 0
        assert not store.exists("web1")

    def test_rm_parent_dir_keeps_store(self, run, store):
        assert run("rm", "--force", "..") == 1
        assert store.list() == ["web1"]

    def test_unknown_machine(self, run):
        assert run("state", "nope") == 1

    def test_ls(self, run, capsys):
        assert run("ls") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("NAME")
        assert lines[1].split() == ["web1", "upcloud", "94.237.1.2", SERVER_UUID]


class TestFlags:
    """Test the flags listing."""

    def test_lists_env_vars(self, run, capsys):
        assert run("flags") == 0
        out = capsys.readouterr().out
        assert "--upcloud-zone" in out
        assert "$UPCLOUD_USE_PRIVATE_NETWORK_ONLY" in out
        assert "uk-lon1" in out
