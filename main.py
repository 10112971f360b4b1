# main.py

import argparse
import cProfile
import json
import logging
import os
import pstats
import sys

import pygame

import constants
import logger_setup
from params import ConfigError, Params
from stream_system import draw

# Get the application's dedicated logger
logger = logging.getLogger(constants.LOGGER_NAME)


def next_output_path(output_dir: str, size: int) -> str:
    """
    Names the next image after the number of entries already in output_dir,
    so repeated runs in one directory do not overwrite each other.
    """
    num_entries = len(os.listdir(output_dir))
    filename = constants.OUTPUT_FILENAME_PATTERN.format(count=num_entries, size=size)
    return os.path.join(output_dir, filename)


def save_image(image, path: str):
    """
    Writes an (x, y, 3) uint8 image through pygame.

    - Inputs:
        - image (np.ndarray): Pixel data indexed [x][y], the layout pygame.surfarray uses.
        - path (str): Destination file; the extension selects the format.
    """
    surface = pygame.surfarray.make_surface(image)
    pygame.image.save(surface, path)
    logger.info(f"Image written to {path}")


def render(params: Params, render_config: dict) -> str:
    """Renders one image and writes it. Returns the output path."""
    output_dir = render_config.get('output_dir', '.')
    os.makedirs(output_dir, exist_ok=True)
    # Name is chosen before the image exists, matching the entry count at startup.
    path = next_output_path(output_dir, params.size)

    image = draw(params, parallel_chunks=render_config.get('parallel_chunks', 1))
    save_image(image, path)
    return path


def main(argv=None):
    """
    Main function: loads the configuration, renders one image and prints its filename.
    """
    parser = argparse.ArgumentParser(description="Render a stream field image.")
    parser.add_argument('--config', default='config.json', help="Path to the configuration file.")
    args = parser.parse_args(argv)

    # --- Setup ---
    logger_setup.setup_logging(args.config)

    with open(args.config, 'r') as f:
        config = json.load(f)
    render_config = config['render']

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {config}")

    try:
        params = Params.from_config(render_config, config['master_seed'])
    except ConfigError as e:
        logger.error(f"Configuration rejected: {e}")
        return 1
    logger.info(f"Render parameters: {params.describe()}")

    if render_config.get('profile', False):
        profiler = cProfile.Profile()
        profiler.enable()
        path = render(params, render_config)
        profiler.disable()
        logger.info("Profiling complete. Printing stats...")
        stats = pstats.Stats(profiler).sort_stats('cumtime')
        stats.print_stats(constants.PROFILE_TOP_ENTRIES)
    else:
        path = render(params, render_config)

    print(path)
    logger.info("Application shutting down.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
