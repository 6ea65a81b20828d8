"""
Tests for the IndexCache time-to-live cache.
"""

from unittest.mock import Mock

import pytest
import requests

from sysimage.download.cache import IndexCache, cache_key_for
from sysimage.download.interfaces import ChannelInfo, DeviceIndex
from sysimage.exceptions import NetworkError

pytestmark = [pytest.mark.unit, pytest.mark.core_downloads]

HOST = "https://system-image.example.com/"


@pytest.fixture
def session():
    """Mock requests.Session whose get() is configured per test."""
    return Mock(spec=requests.Session)


@pytest.fixture
def cache(session, fake_clock):
    """IndexCache with a 180 second TTL over the mock session and fake clock."""
    return IndexCache(HOST, 180, session=session, clock=fake_clock)


class TestChannelsIndex:
    def test_fetches_channels_json(self, cache, session, json_response, channels_json):
        session.get.return_value = json_response(channels_json)

        channels = cache.get_channels_index()

        session.get.assert_called_once_with(f"{HOST}channels.json", timeout=10)
        assert list(channels) == [
            "16.04/stable",
            "16.04/devel",
            "16.04/edge",
            "ubports-touch/legacy",
        ]
        assert channels["16.04/stable"] == ChannelInfo(
            devices=frozenset({"bacon", "hammerhead"})
        )
        assert channels["16.04/edge"].hidden is True
        assert channels["ubports-touch/legacy"].redirect is True
        assert not channels["ubports-touch/legacy"].is_visible

    def test_channel_index_is_read_only(
        self, cache, session, json_response, channels_json
    ):
        session.get.return_value = json_response(channels_json)
        channels = cache.get_channels_index()
        with pytest.raises(TypeError):
            channels["new"] = ChannelInfo()  # type: ignore[index]

    def test_non_object_payload_is_network_error(self, cache, session, json_response):
        session.get.return_value = json_response(["not", "a", "mapping"])
        with pytest.raises(NetworkError) as exc_info:
            cache.get_channels_index()
        assert exc_info.value.url == f"{HOST}channels.json"


class TestDeviceIndex:
    def test_fetches_device_index(
        self, cache, session, json_response, device_index_json
    ):
        session.get.return_value = json_response(device_index_json)

        index = cache.get_device_index("bacon", "16.04/stable")

        session.get.assert_called_once_with(
            f"{HOST}16.04/stable/bacon/index.json", timeout=10
        )
        assert isinstance(index, DeviceIndex)
        assert index.generated_at == "Mon Jan 02 10:00:00 UTC 2023"
        assert [image.version for image in index.images] == [3, 5, 6]
        assert index.images[1].files[0].path == "/pool/ubports-bbb.tar.xz"

    def test_missing_images_key(self, cache, session, json_response):
        session.get.return_value = json_response({"global": {}})
        assert cache.get_device_index("bacon", "stable").images is None

    def test_devices_are_cached_separately(
        self, cache, session, json_response, device_index_json
    ):
        session.get.return_value = json_response(device_index_json)
        cache.get_device_index("bacon", "stable")
        cache.get_device_index("hammerhead", "stable")
        cache.get_device_index("bacon", "devel")

        assert session.get.call_count == 3
        assert cache.get_entry(cache_key_for("bacon", "devel")) is not None


class TestExpiry:
    """A fresh entry is served from memory; an expired one is refreshed once."""

    def test_second_call_before_expiry_is_cached(
        self, cache, session, json_response, channels_json, fake_clock
    ):
        session.get.return_value = json_response(channels_json)

        first = cache.get_channels_index()
        fake_clock.advance(179.9)
        second = cache.get_channels_index()

        assert second is first
        assert session.get.call_count == 1

    def test_call_after_expiry_refreshes_once(
        self, cache, session, json_response, channels_json, fake_clock
    ):
        session.get.return_value = json_response(channels_json)

        first = cache.get_channels_index()
        fake_clock.advance(180)
        second = cache.get_channels_index()
        third = cache.get_channels_index()

        assert session.get.call_count == 2
        assert second is not first
        assert third is second

    def test_expiry_recorded_from_clock(
        self, cache, session, json_response, channels_json, fake_clock
    ):
        session.get.return_value = json_response(channels_json)
        cache.get_channels_index()
        assert cache.get_entry("channels").expires_at == fake_clock.now + 180

    def test_clear_forces_refetch(self, cache, session, json_response, channels_json):
        session.get.return_value = json_response(channels_json)
        cache.get_channels_index()
        cache.clear()
        cache.get_channels_index()
        assert session.get.call_count == 2


class TestFailures:
    """Failed fetches never poison the stored entry."""

    def test_http_error_status(self, cache, session, json_response):
        session.get.return_value = json_response({}, status_code=404)
        with pytest.raises(NetworkError) as exc_info:
            cache.get_device_index("bacon", "stable")
        assert exc_info.value.status_code == 404
        assert cache.get_entry(cache_key_for("bacon", "stable")) is None

    def test_transport_error(self, cache, session):
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkError) as exc_info:
            cache.get_channels_index()
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_invalid_json(self, cache, session, json_response):
        session.get.return_value = json_response(ValueError("Expecting value"))
        with pytest.raises(NetworkError):
            cache.get_channels_index()

    @pytest.mark.parametrize(
        "payload",
        [
            {"global": "x", "images": []},
            {"global": {}, "images": [5]},
            {"global": {}, "images": [{"version": 1, "type": "full", "files": 5}]},
        ],
        ids=["global-not-object", "image-not-object", "files-not-list"],
    )
    def test_malformed_device_index(self, cache, session, json_response, payload):
        session.get.return_value = json_response(payload)
        with pytest.raises(NetworkError) as exc_info:
            cache.get_device_index("bacon", "stable")
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert cache.get_entry(cache_key_for("bacon", "stable")) is None

    @pytest.mark.parametrize(
        "payload",
        [{"stable": {"devices": 5}}, {"stable": {"devices": [{"bacon": {}}]}}],
        ids=["devices-number", "devices-list-of-objects"],
    )
    def test_malformed_channel_index(self, cache, session, json_response, payload):
        session.get.return_value = json_response(payload)
        with pytest.raises(NetworkError):
            cache.get_channels_index()
        assert cache.get_entry("channels") is None

    def test_channel_devices_as_list(self, cache, session, json_response):
        session.get.return_value = json_response({"stable": {"devices": ["bacon"]}})
        assert cache.get_channels_index()["stable"].devices == frozenset({"bacon"})

    def test_failed_refresh_keeps_entry_and_raises(
        self, cache, session, json_response, channels_json, fake_clock
    ):
        session.get.return_value = json_response(channels_json)
        cache.get_channels_index()
        stored = cache.get_entry("channels")

        fake_clock.advance(200)
        session.get.return_value = json_response({}, status_code=503)
        with pytest.raises(NetworkError):
            cache.get_channels_index()

        assert cache.get_entry("channels") is stored

        session.get.return_value = json_response(channels_json)
        cache.get_channels_index()
        assert cache.get_entry("channels") is not stored

    def test_serve_stale_returns_expired_data(
        self, session, json_response, channels_json, fake_clock
    ):
        cache = IndexCache(
            HOST, 180, session=session, clock=fake_clock, serve_stale=True
        )
        session.get.return_value = json_response(channels_json)
        first = cache.get_channels_index()

        fake_clock.advance(200)
        session.get.side_effect = requests.Timeout("slow")
        assert cache.get_channels_index() is first

    def test_serve_stale_without_entry_still_raises(self, session, fake_clock):
        cache = IndexCache(
            HOST, 180, session=session, clock=fake_clock, serve_stale=True
        )
        session.get.side_effect = requests.Timeout("slow")
        with pytest.raises(NetworkError):
            cache.get_channels_index()
