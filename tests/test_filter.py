"""Table tests for the resolution / aspect-ratio filter."""

import pytest

from wallfetch.core.filter import FilterConfig, WallpaperFilter, parse_ratio, parse_resolution


@pytest.mark.parametrize(
    "config, resolution, passed, reason",
    [
        # no constraints
        (FilterConfig(), "640x480", True, ""),
        # malformed input
        (FilterConfig(), "1920", False, "invalid resolution format: 1920"),
        (FilterConfig(), "1920x1080x2", False, "invalid resolution format: 1920x1080x2"),
        (FilterConfig(), "widexhigh", False, "invalid resolution format: widexhigh"),
        (FilterConfig(), "", False, "invalid resolution format: "),
        (FilterConfig(), "0x1080", False, "invalid resolution format: 0x1080"),
        # minimums
        (FilterConfig(min_width=1920), "1280x1080", False, "width 1280 < minimum 1920"),
        (FilterConfig(min_width=1920), "1920x1080", True, ""),
        (FilterConfig(min_height=1080), "1920x720", False, "height 720 < minimum 1080"),
        (FilterConfig(min_width=1920, min_height=1080), "800x600", False, "width 800 < minimum 1920"),
        # maximums
        (FilterConfig(max_width=2560), "3840x2160", False, "width 3840 > maximum 2560"),
        (FilterConfig(max_height=1440), "2560x2160", False, "height 2160 > maximum 1440"),
        (FilterConfig(max_width=2560, max_height=1440), "2560x1440", True, ""),
        # orientation
        (FilterConfig(only_landscape=True), "1080x1920", False,
         "portrait image (1080x1920) - only landscape allowed"),
        (FilterConfig(only_landscape=True), "1080x1080", True, ""),
        (FilterConfig(only_landscape=False), "1080x1920", True, ""),
        # aspect ratios
        (FilterConfig(aspect_ratios=["16x9"]), "1920x1080", True, ""),
        (FilterConfig(aspect_ratios=["16x9"]), "1920x1200", False,
         "aspect ratio 1.60 doesn't match required ratios: 16x9"),
        (FilterConfig(aspect_ratios=["16x9", "21x9"]), "2560x1080", True, ""),
        (FilterConfig(aspect_ratios=["16x9", "21x9"]), "1600x1200", False,
         "aspect ratio 1.33 doesn't match required ratios: 16x9, 21x9"),
        (FilterConfig(aspect_ratios=["bogus", "16x0"]), "1920x1080", False,
         "aspect ratio 1.78 doesn't match required ratios: bogus, 16x0"),
    ],
)
def test_validate(config, resolution, passed, reason):
    result = WallpaperFilter(config).validate(resolution)
    assert result.passed is passed
    assert result.reason == reason


def test_ratio_tolerance_boundaries():
    f = WallpaperFilter(FilterConfig(aspect_ratios=["2x1"]))
    assert f.validate("2100x1000").passed  # 2.1, exactly at the tolerance
    assert not f.validate("2200x1000").passed  # 2.2
    assert f.validate("1900x1000").passed  # 1.9


def test_custom_tolerance():
    f = WallpaperFilter(FilterConfig(aspect_ratios=["16x9"], tolerance=0.2))
    assert f.validate("1920x1200").passed


def test_checks_run_in_order():
    # width is reported before landscape and ratio problems
    config = FilterConfig(min_width=1920, only_landscape=True, aspect_ratios=["16x9"])
    assert WallpaperFilter(config).validate("1080x1920").reason == "width 1080 < minimum 1920"


def test_validate_is_deterministic():
    f = WallpaperFilter(FilterConfig(min_width=1920, aspect_ratios=["16x9"]))
    assert {f.validate("1920x1080") for _ in range(5)} == {f.validate("1920x1080")}


def test_parse_helpers():
    assert parse_resolution("3440x1440") == (3440, 1440)
    with pytest.raises(ValueError):
        parse_resolution("3440*1440")
    assert parse_ratio("16x9") == pytest.approx(16 / 9)
    assert parse_ratio("21") is None
    assert parse_ratio("axb") is None
    assert parse_ratio("1x0") is None
