"""Unit tests for progress sampling."""

import pytest

from sdmaterial.core.progress import ProgressPoller, normalize_progress
from sdmaterial.core.transport import Response
from sdmaterial.utils.exceptions import InvalidResponseError, NetworkError

PROGRESS = "/sdapi/v1/progress"

PROGRESS_BODY = {
    "progress": 0.42,
    "eta_relative": 3.5,
    "state": {
        "skipped": False,
        "interrupted": False,
        "job": "txt2img",
        "job_count": 1,
        "job_timestamp": "20240101120000",
        "job_no": 0,
        "sampling_step": 8,
        "sampling_steps": 20,
    },
    "current_image": None,
    "textinfo": "",
}


@pytest.mark.unit
class TestNormalizeProgress:
    @pytest.mark.parametrize(
        "raw,expected",
        [(0.0, 0.0), (0.5, 50.0), (1.0, 100.0), (42.0, 42.0), (100.0, 100.0), (250.0, 100.0), (-3.0, 0.0)],
    )
    def test_fraction_or_percent(self, raw, expected):
        assert normalize_progress(raw) == pytest.approx(expected)


@pytest.mark.unit
class TestProgressPoller:
    def _poller(self, server_config, fake_transport):
        return ProgressPoller(fake_transport, server_config.url(PROGRESS), timeout=5)

    def test_sample_parses_body(self, server_config, fake_transport, make_json_response):
        fake_transport.route("GET", PROGRESS, make_json_response(PROGRESS_BODY))
        sample = self._poller(server_config, fake_transport).sample()
        assert sample.progress == pytest.approx(0.42)
        assert sample.percent == pytest.approx(42.0)
        assert sample.eta_relative == pytest.approx(3.5)
        assert sample.job_state == "txt2img"
        assert sample.state.sampling_step == 8
        assert sample.current_image is None
        assert sample.status_text == "Step 8/20"

    def test_textinfo_preferred_for_status(self, server_config, fake_transport, make_json_response):
        body = dict(PROGRESS_BODY, textinfo="Waiting...")
        fake_transport.route("GET", PROGRESS, make_json_response(body))
        assert self._poller(server_config, fake_transport).sample().status_text == "Waiting..."

    def test_idle_server(self, server_config, fake_transport, make_json_response):
        fake_transport.route("GET", PROGRESS, make_json_response({"progress": 0, "state": {}}))
        sample = self._poller(server_config, fake_transport).sample()
        assert sample.percent == 0.0
        assert sample.job_state == ""
        assert sample.status_text == "0%"

    def test_non_json_body(self, server_config, fake_transport):
        fake_transport.route("GET", PROGRESS, Response(status_code=200, text="busy"))
        with pytest.raises(InvalidResponseError):
            self._poller(server_config, fake_transport).sample()

    def test_bad_progress_value(self, server_config, fake_transport, make_json_response):
        fake_transport.route("GET", PROGRESS, make_json_response({"progress": "lots"}))
        with pytest.raises(InvalidResponseError):
            self._poller(server_config, fake_transport).sample()

    def test_transport_error_propagates(self, server_config, fake_transport):
        fake_transport.route("GET", PROGRESS, NetworkError("down"))
        with pytest.raises(NetworkError):
            self._poller(server_config, fake_transport).sample()
