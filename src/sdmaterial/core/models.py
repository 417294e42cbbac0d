"""
Request and response data types for the Stable Diffusion web API.

Covers the model catalog entries, the caller-facing generation request, the
txt2img response envelope and progress samples, plus the structural JSON
check every response body goes through before it is decoded.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from sdmaterial.utils.exceptions import InvalidResponseError

# Response excerpt length kept on errors
_EXCERPT_MAX = 500


def excerpt(text: str, limit: int = _EXCERPT_MAX) -> str:
    """Shorten a response body for error messages and logs."""
    if len(text) <= limit:
        return text
    return text[:limit] + f"... <truncated, {len(text)} chars total>"


def decode_json_body(text: str) -> Any:
    """
    Decode a JSON response body after a structural sniff.

    The body must start (ignoring leading whitespace) with '[' or '{'; anything
    else (HTML error pages, plain text) is rejected before json.loads runs.

    Raises:
        InvalidResponseError: If the body is not a JSON array/object
    """
    stripped = (text or "").lstrip()
    if not stripped or stripped[0] not in "[{":
        raise InvalidResponseError(
            "Response is not a JSON array or object.", response=excerpt(text or "")
        )
    try:
        return json.loads(stripped)
    except ValueError as e:
        raise InvalidResponseError(
            f"Failed to parse response as JSON: {str(e)}", response=excerpt(text)
        ) from e


@dataclass(frozen=True)
class ModelDescriptor:
    """A checkpoint known to the server. Identity key is model_name."""

    title: str
    model_name: str
    hash: str | None = None
    sha256: str | None = None
    filename: str = ""
    config: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelDescriptor":
        """Build from one entry of the sd-models response."""
        title = str(data.get("title") or "")
        name = data.get("model_name") or title
        return cls(
            title=title,
            model_name=str(name),
            hash=data.get("hash"),
            sha256=data.get("sha256"),
            filename=str(data.get("filename") or ""),
            config=data.get("config"),
        )


@dataclass
class GenerationRequest:
    """
    Caller-facing description of one txt2img generation.

    Fields left as None take the server config defaults when the payload is
    built, including seed. A seed of -1 asks the server to pick one.
    """

    prompt: str
    negative_prompt: str = ""
    model: str | None = None
    model_index: int = 0
    sampler: str | None = None
    sampler_index: int | None = None
    width: int | None = None
    height: int | None = None
    steps: int | None = None
    cfg_scale: float | None = None
    seed: int | None = None
    tiling: bool = True


@dataclass
class GenerationResponse:
    """txt2img response envelope: base64 images, parameter echo and info JSON."""

    images: list[str] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    info: str = ""

    @classmethod
    def from_body(cls, text: str) -> "GenerationResponse":
        """
        Decode a txt2img response body.

        Raises:
            InvalidResponseError: If the body is not a JSON object or images is malformed
        """
        data = decode_json_body(text)
        if not isinstance(data, dict):
            raise InvalidResponseError("txt2img response is not a JSON object.", excerpt(text))
        images = data.get("images") or []
        if not isinstance(images, list) or not all(isinstance(i, str) for i in images):
            raise InvalidResponseError("txt2img 'images' is not a list of strings.", excerpt(text))
        parameters = data.get("parameters") or {}
        info = data.get("info") or ""
        return cls(
            images=images,
            parameters=parameters if isinstance(parameters, dict) else {},
            info=info if isinstance(info, str) else json.dumps(info),
        )

    def seed_from_info(self) -> int:
        """
        Return the seed the server actually used, read from the info JSON.

        The parameters echo repeats the request (seed -1 stays -1), so only info
        is authoritative.

        Raises:
            ValueError: If info is empty, not JSON, or has no integer seed
        """
        if not self.info:
            raise ValueError("info is empty")
        info = json.loads(self.info)
        if not isinstance(info, dict) or "seed" not in info:
            raise ValueError("info has no seed")
        seed = info["seed"]
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise ValueError(f"seed is not an integer: {seed!r}")
        return seed


@dataclass
class ProgressState:
    """The 'state' block of a progress response."""

    skipped: bool = False
    interrupted: bool = False
    job: str = ""
    job_count: int = 0
    job_timestamp: str = ""
    job_no: int = 0
    sampling_step: int = 0
    sampling_steps: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ProgressState":
        if not isinstance(data, dict):
            data = {}
        return cls(
            skipped=bool(data.get("skipped", False)),
            interrupted=bool(data.get("interrupted", False)),
            job=str(data.get("job") or ""),
            job_count=int(data.get("job_count") or 0),
            job_timestamp=str(data.get("job_timestamp") or ""),
            job_no=int(data.get("job_no") or 0),
            sampling_step=int(data.get("sampling_step") or 0),
            sampling_steps=int(data.get("sampling_steps") or 0),
        )


@dataclass
class ProgressSample:
    """One progress reading. Not persisted; each sample replaces the last."""

    progress: float
    percent: float
    eta_relative: float = 0.0
    state: ProgressState = field(default_factory=ProgressState)
    current_image: str | None = None
    textinfo: str = ""

    @property
    def job_state(self) -> str:
        return self.state.job

    @property
    def status_text(self) -> str:
        """Human-readable status: server textinfo, else the sampling step counter."""
        if self.textinfo:
            return self.textinfo
        if self.state.sampling_steps:
            return f"Step {self.state.sampling_step}/{self.state.sampling_steps}"
        return f"{self.percent:.0f}%"
