import logging

import pytest
import yaml
from pydantic import ValidationError

from stereodepth.config.settings import DepthConfig, Settings, get_settings
from stereodepth.utils.logger import ColoredFormatter, setup_logger
from stereodepth.utils.timing import FrameTimer


def write_config(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


def test_defaults_when_file_missing(tmp_path):
    settings = Settings.load(tmp_path / "missing.yaml")

    assert settings.depth.backend == "sgbm"
    assert settings.depth.min_depth_mm == 500
    assert settings.depth.max_depth_mm == 15000
    assert not settings.depth.input_is_depth
    assert settings.logging.level == "INFO"


def test_load_from_yaml(tmp_path):
    path = write_config(tmp_path / "config.yaml", {
        "depth": {
            "backend": "BM",
            "baseline_m": 0.12,
            "bm": {"num_disparities": 32, "block_size": 11},
        },
        "logging": {"level": "debug"},
    })

    settings = Settings.load(path)

    assert settings.depth.backend == "bm"
    assert settings.depth.baseline_m == 0.12
    assert settings.depth.bm.num_disparities == 32
    assert settings.logging.level == "DEBUG"


def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert Settings.load(path).depth.backend == "sgbm"


def test_environment_overrides(tmp_path, monkeypatch):
    path = write_config(tmp_path / "config.yaml", {"depth": {"backend": "sgbm"}})
    monkeypatch.setenv("STEREODEPTH_BACKEND", "bm")
    monkeypatch.setenv("STEREODEPTH_LOG_LEVEL", "warning")

    settings = Settings.load(path)

    assert settings.depth.backend == "bm"
    assert settings.logging.level == "WARNING"


@pytest.mark.parametrize(
    "depth",
    [
        {"backend": "dispnet"},
        {"sgbm": {"num_disparities": 100}},
        {"sgbm": {"block_size": 4}},
        {"min_depth_mm": 2000, "max_depth_mm": 1000},
        {"min_depth_mm": 0},
        {"max_depth_mm": 40000},
        {"baseline_m": 0.0},
    ],
)
def test_invalid_depth_config(depth):
    with pytest.raises(ValidationError):
        DepthConfig(**depth)


def test_get_settings_is_cached(tmp_path):
    path = write_config(tmp_path / "config.yaml", {"depth": {"num_workers": 3}})

    first = get_settings(path, reload=True)

    assert get_settings() is first
    assert first.depth.num_workers == 3


def test_setup_logger_does_not_duplicate_handlers():
    first = setup_logger("stereodepth.tests.logger", level="DEBUG")
    second = setup_logger("stereodepth.tests.logger", level="WARNING")

    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.WARNING


def test_colored_formatter_leaves_record_untouched():
    formatter = ColoredFormatter("%(levelname)s %(message)s", use_colors=True)
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)

    formatted = formatter.format(record)

    assert "boom" in formatted
    assert record.levelname == "ERROR"
    assert record.msg == "boom"


def test_frame_timer():
    timer = FrameTimer(window_size=2)
    assert timer.mean_ms() is None
    assert timer.get_fps() is None

    for duration in (10.0, 20.0, 30.0):
        timer.add(duration)

    assert timer.frame_count == 3
    assert timer.mean_ms() == 25.0
    assert timer.max_ms() == 30.0
    assert timer.get_fps() == pytest.approx(40.0)

    timer.reset()
    assert timer.frame_count == 0


def test_setup_logger_rejects_unknown_level():
    with pytest.raises(ValueError):
        setup_logger("stereodepth.tests.bad_level", level="verbose")
