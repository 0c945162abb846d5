import cv2
import numpy as np
import pytest

from stereodepth.config.settings import DepthConfig, get_settings
from stereodepth.depth.converter import INVALID_DEPTH
from stereodepth.main import depth_config_from_args, main, parse_args, write_depth


@pytest.fixture
def no_config(tmp_path):
    return ["--config", str(tmp_path / "missing.yaml")]


@pytest.fixture
def disparity_dir(tmp_path):
    directory = tmp_path / "disparity"
    directory.mkdir()
    for index in range(2):
        disparity = np.full((5, 8), 70.0, dtype=np.float32)
        disparity[0, 0] = 0.0
        np.save(directory / f"{index:06d}.npy", disparity)
    return directory


def test_args_override_depth_config(tmp_path):
    args = parse_args([
        "--backend", "precomputed",
        "--precomputed-dir", str(tmp_path),
        "--baseline", "0.25",
        "--workers", "2",
        "--input-is-depth",
    ])
    base = DepthConfig(calibration_file="calib.txt")

    config = depth_config_from_args(base, args)

    assert config.backend == "precomputed"
    assert config.precomputed.directory == str(tmp_path)
    assert config.baseline_m == 0.25
    assert config.calibration_file is None
    assert config.num_workers == 2
    assert config.input_is_depth
    assert base.backend == "sgbm"


def test_write_depth_png_and_npy(tmp_path):
    depth = np.array([[500, INVALID_DEPTH]], dtype=np.int16)

    write_depth(tmp_path / "out" / "depth.png", depth)
    write_depth(tmp_path / "depth.npy", depth)

    png = cv2.imread(str(tmp_path / "out" / "depth.png"), cv2.IMREAD_UNCHANGED)
    assert png.dtype == np.uint16
    np.testing.assert_array_equal(png, [[500, INVALID_DEPTH]])
    np.testing.assert_array_equal(np.load(tmp_path / "depth.npy"), depth)


def test_precomputed_sequence(tmp_path, disparity_dir, no_config):
    output_dir = tmp_path / "depth"
    colormap_dir = tmp_path / "vis"

    exit_code = main(no_config + [
        "--backend", "precomputed",
        "--precomputed-dir", str(disparity_dir),
        "--num-frames", "2",
        "--baseline", "0.5",
        "--focal", "700",
        "--output-dir", str(output_dir),
        "--colormap", str(colormap_dir),
    ])

    assert exit_code == 0
    for index in range(2):
        depth = cv2.imread(str(output_dir / f"{index:06d}.png"), cv2.IMREAD_UNCHANGED)
        assert depth[0, 0] == INVALID_DEPTH
        assert np.all(depth.ravel()[1:] == 5000)
        assert (colormap_dir / f"{index:06d}.png").exists()


def test_single_pair_with_sgbm(tmp_path, no_config):
    rng = np.random.default_rng(1)
    left = rng.integers(0, 256, size=(64, 200), dtype=np.uint8)
    right = np.roll(left, -4, axis=1)
    cv2.imwrite(str(tmp_path / "left.png"), left)
    cv2.imwrite(str(tmp_path / "right.png"), right)
    output = tmp_path / "depth.npy"

    exit_code = main(no_config + [
        "--left", str(tmp_path / "left.png"),
        "--right", str(tmp_path / "right.png"),
        "--baseline", "0.1",
        "--focal", "500",
        "--output", str(output),
    ])

    assert exit_code == 0
    depth = np.load(output)
    assert depth.dtype == np.int16
    assert depth.shape == (64, 200)


def test_image_directory_sequence(tmp_path, no_config):
    left_dir = tmp_path / "image_2"
    right_dir = tmp_path / "image_3"
    left_dir.mkdir()
    right_dir.mkdir()
    rng = np.random.default_rng(2)
    for name in ("000000.png", "000001.png"):
        image = rng.integers(0, 256, size=(48, 160), dtype=np.uint8)
        cv2.imwrite(str(left_dir / name), image)
        cv2.imwrite(str(right_dir / name), np.roll(image, -3, axis=1))

    exit_code = main(no_config + [
        "--left-dir", str(left_dir),
        "--right-dir", str(right_dir),
        "--backend", "bm",
        "--output-dir", str(tmp_path / "depth"),
    ])

    assert exit_code == 0
    assert sorted(p.name for p in (tmp_path / "depth").iterdir()) == ["000000.png", "000001.png"]


def test_unsupported_disparity_fails(tmp_path, no_config):
    directory = tmp_path / "disparity"
    directory.mkdir()
    np.save(directory / "000000.npy", np.zeros((3, 3), dtype=np.uint8))

    exit_code = main(no_config + [
        "--backend", "precomputed",
        "--precomputed-dir", str(directory),
        "--num-frames", "1",
        "--output-dir", str(tmp_path / "depth"),
    ])

    assert exit_code == 1
    assert not (tmp_path / "depth").exists()


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["--left", "l.png"],
        ["--left", "l.png", "--right", "r.png", "--num-frames", "2"],
        ["--left-dir", "left"],
    ],
)
def test_invalid_input_selection(argv, no_config):
    assert main(no_config + argv) == 1


def test_missing_precomputed_directory(tmp_path, no_config):
    exit_code = main(no_config + [
        "--backend", "precomputed",
        "--precomputed-dir", str(tmp_path / "nope"),
        "--num-frames", "1",
    ])

    assert exit_code == 1


def test_invalid_calibration(tmp_path, disparity_dir, no_config):
    exit_code = main(no_config + [
        "--backend", "precomputed",
        "--precomputed-dir", str(disparity_dir),
        "--num-frames", "1",
        "--baseline", "-0.5",
    ])

    assert exit_code == 1


def test_invalid_log_level_fails(disparity_dir, no_config):
    exit_code = main(no_config + [
        "--backend", "precomputed",
        "--precomputed-dir", str(disparity_dir),
        "--num-frames", "1",
        "--log-level", "verbose",
    ])

    assert exit_code == 1


def test_log_level_is_case_insensitive(tmp_path, disparity_dir, no_config):
    exit_code = main(no_config + [
        "--backend", "precomputed",
        "--precomputed-dir", str(disparity_dir),
        "--num-frames", "1",
        "--output-dir", str(tmp_path / "depth"),
        "--log-level", "debug",
    ])

    assert exit_code == 0
    assert get_settings().logging.level == "DEBUG"
