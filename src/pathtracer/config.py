"""Render configuration.

``RenderConfig`` carries every knob the renderer consumes. All validation
happens at construction time so a bad configuration is rejected before any
scene upload or kernel compilation takes place.

Example:
    >>> config = RenderConfig(image_height=240, samples_per_pixel=32)
    >>> config.image_width
    426
"""

import math
import os
from dataclasses import dataclass, field, fields
from typing import Any

PARTITION_STRATEGIES = ("interleaved", "contiguous")


def _default_thread_count() -> int:
    return os.cpu_count() or 1


@dataclass
class RenderConfig:
    """Validated rendering parameters.

    Attributes:
        image_height: Output height in pixels.
        samples_per_pixel: Number of jittered paths averaged per pixel.
        aspect_ratio: Width divided by height of the output image.
        thread_count: Number of render workers. Defaults to the core count.
        max_depth: Maximum number of path segments traced per sample.
        gamma: Display gamma; pixels are written as ``c ** (1 / gamma)``.
        partition: Row assignment strategy, "interleaved" or "contiguous".
        russian_roulette: Terminate low-throughput paths stochastically
            after a few bounces.
    """

    image_height: int
    samples_per_pixel: int
    aspect_ratio: float = 16.0 / 9.0
    thread_count: int = field(default_factory=_default_thread_count)
    max_depth: int = 12
    gamma: float = 2.0
    partition: str = "interleaved"
    russian_roulette: bool = False

    def __post_init__(self) -> None:
        _require_positive_int("image_height", self.image_height)
        _require_positive_int("samples_per_pixel", self.samples_per_pixel)
        _require_positive_int("thread_count", self.thread_count)
        _require_positive_int("max_depth", self.max_depth)

        if not (self.aspect_ratio > 0.0 and math.isfinite(self.aspect_ratio)):
            raise ValueError(f"aspect_ratio must be positive and finite, got {self.aspect_ratio}")
        if not (self.gamma > 0.0 and math.isfinite(self.gamma)):
            raise ValueError(f"gamma must be positive and finite, got {self.gamma}")
        if self.partition not in PARTITION_STRATEGIES:
            raise ValueError(
                f"partition must be one of {PARTITION_STRATEGIES}, got {self.partition!r}"
            )
        if self.image_width < 1:
            raise ValueError(
                f"image_height={self.image_height} with aspect_ratio={self.aspect_ratio} "
                "gives an image narrower than one pixel"
            )

    @property
    def image_width(self) -> int:
        """Output width in pixels, truncated from ``image_height * aspect_ratio``."""
        return int(self.image_height * self.aspect_ratio)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderConfig":
        """Build a config from a plain mapping.

        Raises:
            ValueError: If the mapping contains unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown render config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _require_positive_int(name: str, value: Any) -> None:
    # bool is an int subclass but never a meaningful count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
