import configparser
import dataclasses
import os.path
from typing import Optional, Tuple

from geovote.surface import constants
from geovote.surface.estimators import lookup


class ValidationError(Exception):
    """Raised when a configuration cannot be read or holds invalid values."""


@dataclasses.dataclass
class Config:
    votes_file: str
    boundary_file: Optional[str]
    estimator: str
    bandwidth: float
    cell_size: float
    max_cells: int
    idw_power: float
    cutoff: Optional[float]
    reference_lat: Optional[float]
    reference_lng: Optional[float]
    output_file: str
    normalize: bool
    normalize_min: float
    normalize_max: float

    @property
    def reference(self) -> Optional[Tuple[float, float]]:
        if self.reference_lat is None or self.reference_lng is None:
            return None
        return self.reference_lat, self.reference_lng

    def show(self):
        print()
        print('Using configuration:')
        for k, v in self.__dict__.items():
            print(f'  + {k}: {v}')


def config_parser_factory(configuration_file):
    """
    Returns a ConfigParser by reading the specified file.
    """
    if configuration_file is None or not os.path.exists(configuration_file):
        raise ValueError(f'Unable to find configuration file {configuration_file}')
    cfg_parser = configparser.ConfigParser(interpolation=configparser.ExtendedInterpolation())
    cfg_parser.read(configuration_file)
    return cfg_parser


def _get_configuration_value(section, name, value_type, config_parser, overrides, optional=False):
    """
    Returns a value from the provided config parser; any value for the key that
    is provided in the 'overrides' dictionary will take precedence. Blank
    optional values are returned as None.
    """
    if overrides.get(name) is not None:
        return overrides.get(name)

    raw = config_parser.get(section, name, fallback='')
    if optional and raw.strip() == '':
        return None

    if value_type is bool:
        return config_parser.getboolean(section, name)
    elif value_type is int:
        return config_parser.getint(section, name)
    elif value_type is float:
        return config_parser.getfloat(section, name)
    else:
        return raw


def configuration(config_parser, overrides):
    """
    Returns a valid Config object that is populated from the provided config
    parser, with values overriden with anything provided in 'overrides'.
    """
    config_parser['DEFAULT'] = {
        'boundary_file': '',
        'estimator': constants.DEFAULT_ESTIMATOR,
        'bandwidth': constants.DEFAULT_BANDWIDTH,
        'cell_size': constants.DEFAULT_CELL_SIZE,
        'max_cells': constants.MAX_GRID_CELLS,
        'idw_power': constants.DEFAULT_IDW_POWER,
        'cutoff': '',
        'reference_lat': '',
        'reference_lng': '',
        'output_file': constants.DEFAULT_OUTPUT_FILE,
        'normalize': constants.DEFAULT_NORMALIZE,
        'normalize_min': constants.DEFAULT_NORMALIZE_MIN,
        'normalize_max': constants.DEFAULT_NORMALIZE_MAX,
    }
    for section in [constants.SOURCE_SECTION_NAME, constants.SURFACE_SECTION_NAME,
                    constants.PROJECTION_SECTION_NAME, constants.DESTINATION_SECTION_NAME]:
        if not config_parser.has_section(section):
            config_parser.add_section(section)

    source = constants.SOURCE_SECTION_NAME
    surface = constants.SURFACE_SECTION_NAME
    projection = constants.PROJECTION_SECTION_NAME
    destination = constants.DESTINATION_SECTION_NAME
    try:
        return Config(
            _get_configuration_value(source, 'votes_file', str, config_parser, overrides),
            _get_configuration_value(source, 'boundary_file', str, config_parser, overrides, optional=True),
            _get_configuration_value(surface, 'estimator', str, config_parser, overrides),
            _get_configuration_value(surface, 'bandwidth', float, config_parser, overrides),
            _get_configuration_value(surface, 'cell_size', float, config_parser, overrides),
            _get_configuration_value(surface, 'max_cells', int, config_parser, overrides),
            _get_configuration_value(surface, 'idw_power', float, config_parser, overrides),
            _get_configuration_value(surface, 'cutoff', float, config_parser, overrides, optional=True),
            _get_configuration_value(projection, 'reference_lat', float, config_parser, overrides, optional=True),
            _get_configuration_value(projection, 'reference_lng', float, config_parser, overrides, optional=True),
            _get_configuration_value(destination, 'output_file', str, config_parser, overrides),
            _get_configuration_value(destination, 'normalize', bool, config_parser, overrides),
            _get_configuration_value(destination, 'normalize_min', float, config_parser, overrides),
            _get_configuration_value(destination, 'normalize_max', float, config_parser, overrides),
        )
    except (configparser.Error, ValueError) as e:
        raise ValidationError(f'Unable to read the configuration: {e}') from e


def _known_estimator(name):
    try:
        lookup(name)
        return True
    except ValueError:
        return False


def _output_dir_exists(path):
    directory = os.path.dirname(os.path.abspath(path))
    return os.path.isdir(directory)


def validate(configuration):
    """
    Validates each value in the configuration.
    """
    validations = [
        ['votes_file', lambda path: bool(path) and os.path.exists(path), 'The votes_file does not exist.'],
        ['boundary_file', lambda path: path is None or os.path.exists(path), 'The boundary_file does not exist.'],
        ['estimator', _known_estimator, 'The estimator must be one of: idw, kde.'],
        ['bandwidth', lambda value: value > 0, 'The bandwidth must be positive.'],
        ['cell_size', lambda value: value > 0, 'The cell_size must be positive.'],
        ['max_cells', lambda value: value > 0, 'The max_cells must be positive.'],
        ['cutoff', lambda value: value is None or value > 0, 'The cutoff must be positive when set.'],
        ['output_file', _output_dir_exists, 'The directory for output_file does not exist.'],
    ]
    errors = [msg for name, fn, msg in validations if not fn(getattr(configuration, name))]

    if (configuration.reference_lat is None) != (configuration.reference_lng is None):
        errors.append('Both reference_lat and reference_lng must be set, or neither.')
    if configuration.normalize and configuration.normalize_max <= configuration.normalize_min:
        errors.append('The normalize_max must be greater than normalize_min.')

    return len(errors) == 0, errors
