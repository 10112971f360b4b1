import json
import logging
import os

import numpy as np
import pygame
import pytest

import constants
import logger_setup
import main

from conftest import SMALL_RENDER_CONFIG


@pytest.fixture
def run_dir(tmp_path, monkeypatch):
    """A working directory holding a small config.json; logs land under runs/."""
    config = {
        "run_id": "test-run",
        "master_seed": 3,
        "logging": {"level": "DEBUG", "format": "%(levelname)s - %(message)s"},
        "render": dict(SMALL_RENDER_CONFIG, size=16, num_streams=50, output_dir="out"),
    }
    (tmp_path / "config.json").write_text(json.dumps(config))
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    logger_setup.shutdown_logging()


def test_setup_logging_creates_run_log(run_dir):
    log_file = logger_setup.setup_logging("config.json")
    assert log_file == os.path.join("runs", "test-run", constants.LOG_FILENAME)
    logger = logging.getLogger(constants.LOGGER_NAME)
    assert logger.propagate is False
    assert len(logger.handlers) == 2

    # Calling again must not stack handlers.
    logger_setup.setup_logging("config.json")
    assert len(logger.handlers) == 2
    logger.info("hello from the test")
    for handler in logger.handlers:
        handler.flush()
    assert "hello from the test" in (run_dir / log_file).read_text()


def test_next_output_path_counts_entries(tmp_path):
    assert main.next_output_path(str(tmp_path), 64) == os.path.join(str(tmp_path), "img-0-64.png")
    (tmp_path / "something.txt").write_text("x")
    (tmp_path / "img-0-64.png").write_bytes(b"")
    assert main.next_output_path(str(tmp_path), 64).endswith("img-2-64.png")


def test_save_image_keeps_x_y_layout(tmp_path):
    image = np.zeros((8, 4, 3), dtype=np.uint8)
    image[6, 1] = (255, 10, 20)
    path = str(tmp_path / "out.png")
    main.save_image(image, path)

    loaded = pygame.surfarray.array3d(pygame.image.load(path))
    assert loaded.shape == (8, 4, 3)
    assert tuple(loaded[6, 1]) == (255, 10, 20)
    assert not loaded[0, 0].any()


def test_main_renders_and_prints_filename(run_dir, capsys):
    assert main.main(["--config", "config.json"]) == 0
    printed = capsys.readouterr().out.strip().splitlines()[-1]
    assert printed == os.path.join("out", "img-0-16.png")
    assert (run_dir / "out" / "img-0-16.png").exists()

    # Second run picks the next free name.
    assert main.main(["--config", "config.json"]) == 0
    assert (run_dir / "out" / "img-1-16.png").exists()


def test_main_rejects_bad_config(run_dir):
    config = json.loads((run_dir / "config.json").read_text())
    config["render"]["velocity_cap"] = -1
    (run_dir / "config.json").write_text(json.dumps(config))
    assert main.main(["--config", "config.json"]) == 1
    assert not (run_dir / "out").exists()


def test_console_level_overrides_and_defaults(tmp_path):
    render_log = logger_setup.configure_logger(
        "quiet", {"level": "DEBUG", "format": "%(message)s", "console_level": "WARNING"}, str(tmp_path)
    )
    try:
        file_handler, console_handler = logging.getLogger(constants.LOGGER_NAME).handlers
        assert file_handler.level == logging.NOTSET
        assert console_handler.level == logging.WARNING
        assert render_log == os.path.join(str(tmp_path), "quiet", constants.LOG_FILENAME)

        logger_setup.configure_logger("loud", {"level": "INFO", "format": "%(message)s"}, str(tmp_path))
        _, console_handler = logging.getLogger(constants.LOGGER_NAME).handlers
        assert console_handler.level == logging.INFO
    finally:
        logger_setup.shutdown_logging()
    assert logging.getLogger(constants.LOGGER_NAME).handlers == []


def test_main_profile_prints_stats_then_filename(run_dir, capsys):
    config = json.loads((run_dir / "config.json").read_text())
    config["render"]["profile"] = True
    (run_dir / "config.json").write_text(json.dumps(config))

    assert main.main(["--config", "config.json"]) == 0

    out = capsys.readouterr().out
    assert "Ordered by: cumulative time" in out
    assert "function calls" in out
    assert out.strip().splitlines()[-1] == os.path.join("out", "img-0-16.png")
    assert (run_dir / "out" / "img-0-16.png").exists()
