"""
Surface material hand-off.

A finished job produces a SurfaceMaterial (color image, optional normal map and
the material settings). Hosts receive it through a MaterialSink; binding it to
an engine material is the host's business.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from PIL import Image

from sdmaterial.logging_config import get_logger

logger = get_logger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class MaterialSettings:
    """Material parameters a host applies alongside the generated textures."""

    tiling_x: int = 1
    tiling_y: int = 1
    metallic: float = 0.1
    smoothness: float = 0.5
    generate_normal_map: bool = True
    normal_map_strength: float = 0.5

    def __post_init__(self) -> None:
        self.tiling_x = int(_clamp(self.tiling_x, 1, 100))
        self.tiling_y = int(_clamp(self.tiling_y, 1, 100))
        self.metallic = _clamp(self.metallic, 0.0, 1.0)
        self.smoothness = _clamp(self.smoothness, 0.0, 1.0)
        self.normal_map_strength = _clamp(self.normal_map_strength, 0.0, 10.0)


@dataclass
class SurfaceMaterial:
    """Color + normal pair produced by one generation."""

    color: Image.Image
    color_path: Path
    normal_map: Image.Image | None = None
    seed: int | None = None
    settings: MaterialSettings = field(default_factory=MaterialSettings)


class MaterialSink(Protocol):
    """Receives finished materials. Implemented by the host."""

    def apply(self, material: SurfaceMaterial) -> None:
        """Bind the material. May raise; the job then fails."""
        ...


class DiskMaterialSink:
    """Writes the normal map next to the color image as <stem>_normal.png."""

    def __init__(self) -> None:
        self.last_material: SurfaceMaterial | None = None
        self.normal_path: Path | None = None

    def apply(self, material: SurfaceMaterial) -> None:
        self.last_material = material
        self.normal_path = None
        if material.normal_map is None:
            return
        path = material.color_path.with_name(material.color_path.stem + "_normal.png")
        material.normal_map.save(path, format="PNG")
        self.normal_path = path
        logger.info("Normal map written to %s", path)
