# logger_setup.py

import logging
import os
import json

from constants import LOGGER_NAME, LOG_FILENAME


def _close_handlers(logger):
    """Detaches and closes every handler so log files are released."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logger(run_id, log_config, runs_dir='runs'):
    """
    Points the "stream_art" logger at runs/<run_id>/render.log and the console.

    Data Contract:
    - Inputs:
        - run_id (str): Name of the run folder.
        - log_config (dict): 'level' and 'format'; optional 'console_level'
          (defaults to 'level') so long renders can keep the console quiet
          while the file gets per-batch DEBUG progress.
        - runs_dir (str): Parent directory of all run folders.
    - Outputs: str - Path of the render log.
    - Side Effects: Replaces any handlers from an earlier call; creates the run folder.
    """
    render_log_dir = os.path.join(runs_dir, run_id)
    os.makedirs(render_log_dir, exist_ok=True)
    render_log = os.path.join(render_log_dir, LOG_FILENAME)

    logger = logging.getLogger(LOGGER_NAME)
    # Numba and pygame log through the root logger; keep them out of the render log.
    logger.propagate = False
    logger.setLevel(log_config['level'])
    _close_handlers(logger)

    formatter = logging.Formatter(log_config['format'])

    file_handler = logging.FileHandler(render_log)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_config.get('console_level', log_config['level']))
    logger.addHandler(console_handler)

    logger.info(f"Logging initialized. Run ID: {run_id}. Log file: {render_log}")
    return render_log


def setup_logging(config_path='config.json', runs_dir='runs'):
    """
    Reads 'run_id' and the 'logging' section from config_path and configures
    the renderer's logger. Returns the render log path.
    """
    with open(config_path, 'r') as f:
        config = json.load(f)
    return configure_logger(config['run_id'], config['logging'], runs_dir)


def shutdown_logging():
    """Releases the render log; the logger stays usable but silent."""
    _close_handlers(logging.getLogger(LOGGER_NAME))
