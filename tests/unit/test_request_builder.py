"""Unit tests for txt2img payload building."""

import pytest

from sdmaterial.core.config import ServerConfig
from sdmaterial.core.models import GenerationRequest
from sdmaterial.core.request_builder import (
    MAX_DIMENSION,
    MIN_DIMENSION,
    build_txt2img_payload,
    clamp_dimension,
    resolve_sampler,
)
from sdmaterial.core.resolver import DEFAULT_SAMPLERS
from sdmaterial.utils.exceptions import ValidationError


def _build(**kwargs):
    return build_txt2img_payload(GenerationRequest(**kwargs), DEFAULT_SAMPLERS, ServerConfig())


@pytest.mark.unit
class TestClampDimension:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (-5, 128),
            (0, 128),
            (127, 128),
            (128, 128),
            (129, 129),
            (512, 512),
            (2047, 2047),
            (2048, 2048),
            (2049, 2048),
            (100_000, 2048),
        ],
    )
    def test_clamps_to_range(self, value, expected):
        assert clamp_dimension(value) == expected

    def test_is_monotonic(self):
        values = list(range(-10, 2200, 7))
        clamped = [clamp_dimension(v) for v in values]
        assert clamped == sorted(clamped)
        assert all(MIN_DIMENSION <= c <= MAX_DIMENSION for c in clamped)


@pytest.mark.unit
class TestBuildPayload:
    def test_dimensions_clamped_before_wire(self):
        payload = _build(prompt="brick wall", width=64, height=4096)
        assert payload["width"] == 128
        assert payload["height"] == 2048

    def test_request_fields_copied(self):
        payload = _build(
            prompt="a red cube",
            negative_prompt="blurry",
            width=256,
            height=256,
            steps=20,
            cfg_scale=6.5,
            seed=1234,
            tiling=False,
        )
        assert payload["prompt"] == "a red cube"
        assert payload["negative_prompt"] == "blurry"
        assert payload["width"] == 256
        assert payload["height"] == 256
        assert payload["steps"] == 20
        assert payload["cfg_scale"] == 6.5
        assert payload["seed"] == 1234
        assert payload["tiling"] is False

    def test_unset_fields_take_config_defaults(self):
        config = ServerConfig(
            default_width=640, default_height=384, default_steps=12, default_cfg_scale=4.0
        )
        payload = build_txt2img_payload(GenerationRequest(prompt="moss"), DEFAULT_SAMPLERS, config)
        assert payload["width"] == 640
        assert payload["height"] == 384
        assert payload["steps"] == 12
        assert payload["cfg_scale"] == 4.0
        assert payload["seed"] == -1
        assert payload["sampler_name"] == "Euler a"

    def test_configured_default_seed_fills_unset_seed(self):
        config = ServerConfig(default_seed=99)
        unset = build_txt2img_payload(GenerationRequest(prompt="moss"), DEFAULT_SAMPLERS, config)
        explicit = build_txt2img_payload(
            GenerationRequest(prompt="moss", seed=-1), DEFAULT_SAMPLERS, config
        )
        assert unset["seed"] == 99
        assert explicit["seed"] == -1

    def test_default_dimensions_are_clamped_too(self):
        config = ServerConfig(default_width=50, default_height=9000)
        payload = build_txt2img_payload(GenerationRequest(prompt="moss"), DEFAULT_SAMPLERS, config)
        assert (payload["width"], payload["height"]) == (128, 2048)

    def test_noop_knobs(self):
        payload = _build(prompt="sand")
        assert payload["enable_hr"] is False
        assert payload["denoising_strength"] == 0
        assert payload["eta"] == 0
        assert payload["s_churn"] == 0
        assert payload["s_noise"] == 1
        assert payload["batch_size"] == 1
        assert payload["n_iter"] == 1
        assert payload["subseed"] == -1
        assert payload["restore_faces"] is False
        assert payload["styles"] == []

    def test_payloads_do_not_share_mutable_defaults(self):
        first = _build(prompt="a")
        first["styles"].append("x")
        assert _build(prompt="b")["styles"] == []

    def test_empty_prompt_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            _build(prompt="   ")
        assert exc_info.value.field == "prompt"

    def test_zero_steps_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            _build(prompt="x", steps=0)
        assert exc_info.value.field == "steps"


@pytest.mark.unit
class TestResolveSampler:
    def test_explicit_known_name(self):
        payload = _build(prompt="x", sampler="DPM++ 2M Karras")
        assert payload["sampler_name"] == "DPM++ 2M Karras"

    def test_explicit_unknown_name_fails_validation(self):
        with pytest.raises(ValidationError) as exc_info:
            _build(prompt="x", sampler="Warp Drive")
        assert exc_info.value.field == "sampler"

    def test_index_in_range(self):
        assert _build(prompt="x", sampler_index=17)["sampler_name"] == "DDIM"

    @pytest.mark.parametrize("index", [-1, 19, 500])
    def test_index_out_of_range_uses_default(self, index):
        assert _build(prompt="x", sampler_index=index)["sampler_name"] == "Euler a"

    def test_default_comes_from_config(self):
        request = GenerationRequest(prompt="x", sampler_index=99)
        assert resolve_sampler(request, DEFAULT_SAMPLERS, "Heun") == "Heun"
