"""
Progress polling for an outstanding generation.

ProgressPoller issues a single short GET per call. The orchestrator decides
the cadence and drops samples that arrive after the generation settled.
"""

from sdmaterial.core.models import ProgressSample, ProgressState, decode_json_body, excerpt
from sdmaterial.core.transport import Transport
from sdmaterial.utils.exceptions import InvalidResponseError


def normalize_progress(value: float) -> float:
    """
    Map a server progress value to a 0-100 percentage.

    Servers report either a fraction in [0, 1] or a percentage; values up to
    1.0 are treated as fractions.
    """
    value = float(value)
    if value <= 1.0:
        value *= 100.0
    return max(0.0, min(100.0, value))


class ProgressPoller:
    """Reads /sdapi/v1/progress."""

    def __init__(self, transport: Transport, url: str, timeout: float | None = None) -> None:
        self._transport = transport
        self._url = url
        self._timeout = timeout

    def sample(self) -> ProgressSample:
        """
        Take one progress reading.

        Raises:
            TransportError: If the request fails
            InvalidResponseError: If the body is not a progress object
        """
        response = self._transport.send("GET", self._url, timeout=self._timeout)
        data = decode_json_body(response.text)
        if not isinstance(data, dict):
            raise InvalidResponseError("Progress response is not a JSON object.", excerpt(response.text))
        try:
            raw = float(data.get("progress") or 0.0)
            return ProgressSample(
                progress=raw,
                percent=normalize_progress(raw),
                eta_relative=float(data.get("eta_relative") or 0.0),
                state=ProgressState.from_dict(data.get("state")),
                current_image=data.get("current_image") or None,
                textinfo=str(data.get("textinfo") or ""),
            )
        except (TypeError, ValueError) as e:
            raise InvalidResponseError(
                f"Malformed progress response: {str(e)}", excerpt(response.text)
            ) from e
