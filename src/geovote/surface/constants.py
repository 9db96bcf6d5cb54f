# Projection
METERS_PER_DEGREE = 111320.0

# Point-in-polygon
HORIZONTAL_EDGE_EPSILON = 1e-10

# Inverse distance weighting (degrees)
IDW_EPSILON = 0.0001
DEFAULT_IDW_POWER = 2

# Grid construction
MAX_GRID_CELLS = 500000
MAX_COARSENING_PASSES = 2
BANDWIDTH_PADDING_FACTOR = 2

# Upper bound on cell/point pairs evaluated in one vectorised block
MAX_PAIRS_PER_CHUNK = 2000000

# Default configuration values
DEFAULT_ESTIMATOR = 'kde'
DEFAULT_BANDWIDTH = 1000.0  # meters
DEFAULT_CELL_SIZE = 100.0  # meters
DEFAULT_NORMALIZE = True
DEFAULT_NORMALIZE_MIN = 0.0
DEFAULT_NORMALIZE_MAX = 1.0
DEFAULT_OUTPUT_FILE = 'surface.json'

# Configuration sections
SOURCE_SECTION_NAME = 'Source'
SURFACE_SECTION_NAME = 'Surface'
PROJECTION_SECTION_NAME = 'Projection'
DESTINATION_SECTION_NAME = 'Destination'

# Coordinate reference systems
WGS84 = 'EPSG:4326'
WEB_MERCATOR = 'EPSG:3857'
