import time
from unittest.mock import Mock

import platformdirs
import pytest
import requests

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used to group the sysimage test suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object used to register markers.
    """
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line(
        "markers", "core_downloads: index, planning and download pipeline tests"
    )
    config.addinivalue_line("markers", "configuration: configuration handling tests")
    config.addinivalue_line("markers", "integration: end-to-end workflow tests")


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point platformdirs and the XDG environment at temporary directories.

    Creates temp cache, config and log directories, sets the XDG_* variables and
    patches the platformdirs user_* functions so no test touches the real user
    profile.
    """
    base = tmp_path_factory.mktemp("sysimage")
    cache_dir = base / "cache"
    config_dir = base / "config"
    log_dir = base / "log"

    for path in (cache_dir, config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.delenv("SYSIMAGE_LOG_LEVEL", raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.put = _block_network
    requests.delete = _block_network
    requests.head = _block_network
    requests.patch = _block_network
    requests.options = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """
    Make time.sleep instant for all tests to prevent delays.

    Retry backoff paths use time.sleep(). Tests that require real timing
    behavior should monkeypatch sleep back within the test.
    """
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


class FakeClock:
    """Manually advanced clock for cache expiry and rate measurement tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Provide a FakeClock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def device_index_json():
    """
    Provide a decoded device index with one full image of two files.

    The index also contains an older full image and a delta image so version
    selection has something to reject.
    """
    return {
        "global": {"generated_at": "Mon Jan 02 10:00:00 UTC 2023"},
        "images": [
            {
                "type": "full",
                "version": 3,
                "files": [
                    {
                        "path": "/pool/ubports-aaa.tar.xz",
                        "signature": "/pool/ubports-aaa.tar.xz.asc",
                        "checksum": "aa" * 32,
                    }
                ],
            },
            {
                "type": "full",
                "version": 5,
                "files": [
                    {
                        "path": "/pool/ubports-bbb.tar.xz",
                        "signature": "/pool/ubports-bbb.tar.xz.asc",
                        "checksum": "bb" * 32,
                    },
                    {
                        "path": "/pool/device-ccc.tar.xz",
                        "signature": "/pool/device-ccc.tar.xz.asc",
                        "checksum": "cc" * 32,
                    },
                ],
            },
            {
                "type": "delta",
                "version": 6,
                "base": 5,
                "files": [
                    {
                        "path": "/pool/ubports-ddd.delta.tar.xz",
                        "signature": "/pool/ubports-ddd.delta.tar.xz.asc",
                        "checksum": "dd" * 32,
                    }
                ],
            },
        ],
    }


@pytest.fixture
def channels_json():
    """Provide a decoded channel index with visible, hidden and redirect channels."""
    return {
        "16.04/stable": {"devices": {"bacon": {}, "hammerhead": {}}},
        "16.04/devel": {"devices": {"bacon": {}}},
        "16.04/edge": {"hidden": True, "devices": {"bacon": {}}},
        "ubports-touch/legacy": {
            "redirect": "16.04/stable",
            "devices": {"bacon": {}},
        },
    }


@pytest.fixture
def json_response():
    """
    Provide a factory that builds mock requests.Response objects for index fetches.

    The factory takes `payload` (returned by `json()`, or raised when it is an
    Exception) and an optional `status_code` (default 200).
    """

    def _create_response(payload, status_code=200):
        response = Mock(spec=requests.Response)
        response.status_code = status_code
        if isinstance(payload, Exception):
            response.json.side_effect = payload
        else:
            response.json.return_value = payload
        return response

    return _create_response
