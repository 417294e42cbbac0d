"""
Normal map synthesis from a color image.

Each pixel's normal comes from a Sobel-style 3x3 gradient of a grayscale
height estimate. The green channel follows the Y-up (OpenGL) convention:
the gradient is taken with image rows counted from the bottom, so a slope
that rises toward the bottom of the picture faces up (green > 0.5).
Pixels outside the image read the nearest edge pixel (clamp-to-edge), so
border pixels never see wrapped or black neighbors.
"""

import numpy as np
from PIL import Image

# Height is the mean of (R, G, G); blue does not contribute.
_CHANNEL_WEIGHT = 1.0 / 3.0


def _height_field(rgb: np.ndarray) -> np.ndarray:
    """(H, W, 3) float RGB in [0, 1] -> (H, W) height."""
    r = rgb[..., 0]
    g = rgb[..., 1]
    return (r + g + g) * _CHANNEL_WEIGHT


def synthesize_array(rgb: np.ndarray, strength: float) -> np.ndarray:
    """
    Compute unit normals remapped to [0, 1].

    Args:
        rgb: (H, W, 3) float array, channels in [0, 1], row 0 at the top
        strength: Gradient scale; 0 gives a flat map

    Returns:
        (H, W, 3) float64 array; a flat surface is (0.5, 0.5, 1.0)
    """
    height = _height_field(np.asarray(rgb, dtype=np.float64))
    p = np.pad(height, 1, mode="edge")
    h, w = height.shape

    # "below" is the next image row down, "above" the previous one
    below_w = p[2 : h + 2, 0:w]
    below = p[2 : h + 2, 1 : w + 1]
    below_e = p[2 : h + 2, 2 : w + 2]
    west = p[1 : h + 1, 0:w]
    east = p[1 : h + 1, 2 : w + 2]
    above_w = p[0:h, 0:w]
    above = p[0:h, 1 : w + 1]
    above_e = p[0:h, 2 : w + 2]

    edge_x = 0.25 * (below_w - below_e) + 0.5 * (west - east) + 0.25 * (above_w - above_e)
    edge_y = 0.25 * (below_w - above_w) + 0.5 * (below - above) + 0.25 * (below_e - above_e)

    normals = np.stack((edge_x * strength, edge_y * strength, np.ones_like(edge_x)), axis=-1)
    normals /= np.linalg.norm(normals, axis=-1, keepdims=True)
    return normals * 0.5 + 0.5


def synthesize(image: Image.Image, strength: float = 0.5) -> Image.Image:
    """
    Derive a tangent-space normal map from a color image.

    Deterministic and stateless. Output has the input's size, mode RGBA,
    alpha fully opaque. Components are quantized as floor(v * 255 + 0.5), so
    the flat normal (0.5, 0.5, 1.0) is stored as (128, 128, 255).

    Args:
        image: Source color image (any PIL mode)
        strength: Gradient scale (typical range 0-10)

    Returns:
        Normal map image
    """
    rgb = np.asarray(image.convert("RGB"), dtype=np.float64) / 255.0
    normals = synthesize_array(rgb, strength)
    quantized = np.floor(normals * 255.0 + 0.5).clip(0, 255).astype(np.uint8)
    alpha = np.full(quantized.shape[:2] + (1,), 255, dtype=np.uint8)
    return Image.fromarray(np.concatenate((quantized, alpha), axis=-1))
