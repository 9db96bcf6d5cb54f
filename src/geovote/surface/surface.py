import configparser
import json
import logging
import os.path
import sys

from funcy import decorator
from pyfiglet import Figlet
from rich.prompt import Confirm, Prompt

from geovote.surface import config
from geovote.surface import constants
from geovote.surface import estimators
from geovote.surface import readers
from geovote.surface.boundary import parse_boundary
from geovote.surface.normalization import normalize


CONSOLE_FORMAT = "%(message)s"
LOGFILE_FORMAT = "%(asctime)s|%(levelname)s|%(name)s|%(message)s"
LOGGER_NAME = "geovote"


def init_logging(log_file="geovote.log"):
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    logfile_handler = logging.FileHandler(log_file, "w")
    logfile_handler.setLevel(logging.DEBUG)
    logfile_handler.setFormatter(logging.Formatter(LOGFILE_FORMAT))
    logger.addHandler(logfile_handler)


@decorator
def log(call):
    logging.getLogger(LOGGER_NAME).info(call._func.__name__)
    return call()


def banner():
    """
    Displays the name of this utility using incredible ASCII-art.
    """
    f = Figlet(font='slant')
    return f.renderText('geovote')


def init_config(configuration_file):
    """
    Prompts the user for configuration values and then creates a valid configuration file.
    """
    print("""This utility will create a surface configuration file by prompting """
          """you for values for each of the configuration parameters.""")
    print()
    if not configuration_file:
        configuration_file = Prompt.ask("configuration file name", default="surface.ini")
    else:
        print(f'Creating configuration file {configuration_file}')
        print()

    if os.path.exists(configuration_file):
        print(f'WARNING: The {configuration_file} already exists.')
        overwrite = Confirm.ask("Overwrite?")
        if not overwrite:
            print('Not overwriting existing file. Exiting.')
            exit(1)

    cfg_parser = configparser.ConfigParser()

    print()
    print(f'{constants.SOURCE_SECTION_NAME} Data Parameters')
    print('--------------------------------------------------')
    cfg_parser.add_section(constants.SOURCE_SECTION_NAME)
    cfg_parser.set(constants.SOURCE_SECTION_NAME, "votes_file", Prompt.ask("Votes file (CSV or GeoJSON)", default="votes.csv"))
    cfg_parser.set(constants.SOURCE_SECTION_NAME, "boundary_file", Prompt.ask("Boundary GeoJSON file (blank for none)", default=""))

    print()
    print(f'{constants.SURFACE_SECTION_NAME} Parameters')
    print('--------------------------------------------------')
    cfg_parser.add_section(constants.SURFACE_SECTION_NAME)
    cfg_parser.set(constants.SURFACE_SECTION_NAME, "estimator", Prompt.ask("Estimator", choices=["kde", "idw"], default=constants.DEFAULT_ESTIMATOR))
    cfg_parser.set(constants.SURFACE_SECTION_NAME, "bandwidth", Prompt.ask("Kernel bandwidth in meters", default=str(constants.DEFAULT_BANDWIDTH)))
    cfg_parser.set(constants.SURFACE_SECTION_NAME, "cell_size", Prompt.ask("Cell size in meters", default=str(constants.DEFAULT_CELL_SIZE)))

    print()
    print(f'{constants.DESTINATION_SECTION_NAME} Parameters')
    print('--------------------------------------------------')
    cfg_parser.add_section(constants.DESTINATION_SECTION_NAME)
    cfg_parser.set(constants.DESTINATION_SECTION_NAME, "output_file", Prompt.ask("Output file", default=constants.DEFAULT_OUTPUT_FILE))
    cfg_parser.set(constants.DESTINATION_SECTION_NAME, "normalize", Prompt.ask("Normalize values? (True/False)", default=str(constants.DEFAULT_NORMALIZE)))

    print()
    print(f'Saving new configuration: {configuration_file}')
    with open(configuration_file, "tw") as file:
        cfg_parser.write(file)

    return configuration_file


def progress_logger(step=10):
    """
    Returns a progress callback that logs each time another ``step`` percent
    of the grid rows has been computed.
    """
    logger = logging.getLogger(LOGGER_NAME)
    reported = 0

    def report(rows_done, total_rows):
        nonlocal reported
        percent = rows_done * 100 // total_rows
        if percent >= reported + step:
            reported = percent - percent % step
            logger.debug(f"Computed {rows_done}/{total_rows} rows ({percent}%)")

    return report


def build_surface(points, boundary, configuration, progress=None):
    """
    Computes the configured surface and, when configured, rescales it into the
    normalization range.

    Returns a tuple of (grid, raw value range).
    """
    estimator = estimators.from_config(configuration)
    grid = estimator.estimate(points, configuration.cell_size, boundary, progress)
    raw_range = (grid.min, grid.max)

    if configuration.normalize and not grid.is_empty:
        grid = normalize(grid, grid.min, grid.max, configuration.normalize_min, configuration.normalize_max)

    return grid, raw_range


def surface_document(grid, raw_range, configuration):
    estimator = estimators.from_config(configuration)
    return {
        **grid.to_dict(),
        "raw_min": raw_range[0],
        "raw_max": raw_range[1],
        "normalized": bool(configuration.normalize and not grid.is_empty),
        "parameters": estimator.describe(),
    }


@log
def load_inputs(configuration):
    points = readers.read_votes(configuration.votes_file)
    boundary = None
    if configuration.boundary_file:
        geojson = readers.read_boundary(configuration.boundary_file)
        boundary = parse_boundary(geojson)
        if boundary is None:
            logging.getLogger(LOGGER_NAME).warning(
                f"Could not parse boundary in {configuration.boundary_file}, clipping disabled"
            )
    return points, boundary


@log
def write_surface(document, output_file):
    with open(output_file, "tw") as file:
        json.dump(document, file)
    logging.getLogger(LOGGER_NAME).info(f"Wrote surface to {output_file}")


def compute(configuration):
    """
    Reads the votes and boundary named in the configuration, computes the
    surface and writes it as JSON.
    """
    valid, errors = config.validate(configuration)
    if not valid:
        raise config.ValidationError('\n'.join(errors))

    points, boundary = load_inputs(configuration)
    grid, raw_range = build_surface(points, boundary, configuration, progress_logger())

    if grid.is_empty:
        logging.getLogger(LOGGER_NAME).warning("Surface is empty, nothing to display")

    write_surface(surface_document(grid, raw_range, configuration), configuration.output_file)
    return grid
