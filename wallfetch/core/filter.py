"""Resolution and aspect-ratio filtering of candidate wallpapers."""

from dataclasses import dataclass, field
from typing import Optional

# Absolute tolerance when comparing width/height against a listed ratio
DEFAULT_RATIO_TOLERANCE = 0.1


@dataclass
class FilterConfig:
    """Numeric constraints a wallpaper must satisfy. Zero disables a bound."""

    min_width: int = 0
    min_height: int = 0
    max_width: int = 0
    max_height: int = 0
    only_landscape: bool = False
    aspect_ratios: list[str] = field(default_factory=list)  # e.g. ["16x9", "21x9"]
    tolerance: float = DEFAULT_RATIO_TOLERANCE


@dataclass(frozen=True)
class FilterResult:
    passed: bool
    reason: str = ""


def parse_resolution(resolution: str) -> tuple[int, int]:
    """Parse "1920x1080" into (1920, 1080).

    Raises:
        ValueError: If the string is not two positive integers joined by "x".
    """
    parts = resolution.split("x")
    if len(parts) != 2:
        raise ValueError(f"invalid resolution format: {resolution}")
    width, height = int(parts[0]), int(parts[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid resolution format: {resolution}")
    return width, height


def parse_ratio(ratio: str) -> Optional[float]:
    """Parse "16x9" into 1.777..., or None when the entry is malformed."""
    parts = ratio.split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if height == 0:
        return None
    return width / height


class WallpaperFilter:
    """Validates wallpaper resolutions against a FilterConfig."""

    def __init__(self, config: FilterConfig):
        self.config = config

    def validate(self, resolution: str) -> FilterResult:
        """Check a "WIDTHxHEIGHT" resolution. Pure and deterministic."""
        cfg = self.config
        try:
            width, height = parse_resolution(resolution)
        except ValueError:
            return FilterResult(False, f"invalid resolution format: {resolution}")

        if cfg.min_width > 0 and width < cfg.min_width:
            return FilterResult(False, f"width {width} < minimum {cfg.min_width}")
        if cfg.min_height > 0 and height < cfg.min_height:
            return FilterResult(False, f"height {height} < minimum {cfg.min_height}")
        if cfg.max_width > 0 and width > cfg.max_width:
            return FilterResult(False, f"width {width} > maximum {cfg.max_width}")
        if cfg.max_height > 0 and height > cfg.max_height:
            return FilterResult(False, f"height {height} > maximum {cfg.max_height}")

        if cfg.only_landscape and height > width:
            return FilterResult(False, f"portrait image ({width}x{height}) - only landscape allowed")

        if cfg.aspect_ratios:
            current = width / height
            if not any(self._ratio_matches(current, r) for r in cfg.aspect_ratios):
                allowed = ", ".join(cfg.aspect_ratios)
                return FilterResult(
                    False, f"aspect ratio {current:.2f} doesn't match required ratios: {allowed}"
                )

        return FilterResult(True)

    def validate_wallpaper(self, wallpaper) -> FilterResult:
        return self.validate(wallpaper.resolution)

    def _ratio_matches(self, current: float, required: str) -> bool:
        ratio = parse_ratio(required)
        if ratio is None:
            return False
        # small epsilon so 2.0 vs 2.1 lands inside a 0.1 tolerance
        return abs(current - ratio) <= self.config.tolerance + 1e-9
