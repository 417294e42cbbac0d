"""
Build the txt2img wire payload from a GenerationRequest.

Dimensions are clamped before the payload is assembled so out-of-range sizes
never reach the server. Every knob the request does not control is sent with
the server's no-op value.
"""

from typing import Any

from sdmaterial.core.config import ServerConfig
from sdmaterial.core.models import GenerationRequest
from sdmaterial.logging_config import get_logger
from sdmaterial.utils.exceptions import ValidationError

logger = get_logger(__name__)

MIN_DIMENSION = 128
MAX_DIMENSION = 2048

# Hires fix, variation seeds and sampler noise knobs; all disabled/no-op.
_PAYLOAD_DEFAULTS: dict[str, Any] = {
    "enable_hr": False,
    "denoising_strength": 0,
    "firstphase_width": 0,
    "firstphase_height": 0,
    "hr_scale": 2,
    "hr_upscaler": "",
    "hr_second_pass_steps": 0,
    "hr_resize_x": 0,
    "hr_resize_y": 0,
    "styles": [],
    "subseed": -1,
    "subseed_strength": 0,
    "seed_resize_from_h": -1,
    "seed_resize_from_w": -1,
    "batch_size": 1,
    "n_iter": 1,
    "restore_faces": False,
    "eta": 0,
    "s_churn": 0,
    "s_tmax": 0,
    "s_tmin": 0,
    "s_noise": 1,
    "override_settings_restore_afterwards": True,
    "sampler_index": "Euler",
}


def clamp_dimension(value: int) -> int:
    """Clamp an image side length to [128, 2048]."""
    return max(MIN_DIMENSION, min(MAX_DIMENSION, int(value)))


def resolve_sampler(
    request: GenerationRequest,
    samplers: tuple[str, ...] | list[str],
    default: str,
) -> str:
    """
    Pick the sampler name for a request.

    An explicit name must be in samplers. Otherwise sampler_index selects from
    samplers; an out-of-range index falls back to default.

    Raises:
        ValidationError: If an explicit sampler name is unknown
    """
    if request.sampler is not None:
        if request.sampler not in samplers:
            raise ValidationError(
                f"Unknown sampler {request.sampler!r}.",
                field="sampler",
            )
        return request.sampler
    index = request.sampler_index
    if index is not None:
        if 0 <= index < len(samplers):
            return samplers[index]
        logger.debug("Sampler index %s out of range; using %s", index, default)
    return default


def build_txt2img_payload(
    request: GenerationRequest,
    samplers: tuple[str, ...] | list[str],
    config: ServerConfig,
) -> dict[str, Any]:
    """
    Convert a request into the txt2img JSON body.

    Args:
        request: The generation request
        samplers: Resolved sampler list
        config: Supplies defaults for unset fields

    Returns:
        JSON-serializable payload

    Raises:
        ValidationError: If the prompt is empty, steps < 1 or the sampler is unknown
    """
    if not request.prompt or not request.prompt.strip():
        raise ValidationError("Prompt cannot be empty", field="prompt")

    width = clamp_dimension(request.width if request.width is not None else config.default_width)
    height = clamp_dimension(
        request.height if request.height is not None else config.default_height
    )
    steps = request.steps if request.steps is not None else config.default_steps
    if steps < 1:
        raise ValidationError(f"Steps must be at least 1, got {steps}.", field="steps")
    cfg_scale = request.cfg_scale if request.cfg_scale is not None else config.default_cfg_scale
    seed = request.seed if request.seed is not None else config.default_seed

    payload = dict(_PAYLOAD_DEFAULTS)
    payload["styles"] = []
    payload.update(
        {
            "prompt": request.prompt,
            "negative_prompt": request.negative_prompt or "",
            "sampler_name": resolve_sampler(request, samplers, config.default_sampler),
            "width": width,
            "height": height,
            "steps": int(steps),
            "cfg_scale": float(cfg_scale),
            "seed": int(seed),
            "tiling": bool(request.tiling),
        }
    )
    return payload
