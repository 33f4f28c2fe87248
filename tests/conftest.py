"""
UpCloud Machine Test Fixtures
=============================

Shared fixtures for all test modules.
"""

from unittest.mock import patch

import pytest

from upcloud_machine.driver import UpCloudDriver

from fakes import FakeProviderClient, options, SERVER_UUID, PUBLIC_KEY


# ============================================
# FAKE PROVIDER
# ============================================

@pytest.fixture
def fake_client():
    """A fake provider with one started server."""
    return FakeProviderClient()


@pytest.fixture
def sleeps():
    """Records the delays the polling loops asked for."""
    return []


@pytest.fixture
def driver_kwargs(fake_client, sleeps):
    """Constructor arguments wiring a driver to the fake provider."""
    return {
        "client_factory": lambda config: fake_client,
        "sleep": sleeps.append,
    }


# ============================================
# DRIVERS
# ============================================

@pytest.fixture
def driver(tmp_path, driver_kwargs):
    """A configured driver with no server yet."""
    d = UpCloudDriver("web1", str(tmp_path), **driver_kwargs)
    d.set_config_from_flags(options())
    return d


@pytest.fixture
def created_driver(driver):
    """A configured driver that already owns a server."""
    driver.record.server_uuid = SERVER_UUID
    driver.record.ip_address = "94.237.1.2"
    return driver


@pytest.fixture
def fake_keygen():
    """Skip ssh-keygen and hand back a fixed public key."""
    with patch("upcloud_machine.driver.generate_ssh_key", return_value=PUBLIC_KEY) as keygen:
        yield keygen
