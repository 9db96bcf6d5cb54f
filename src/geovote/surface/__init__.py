__version__ = "v0.3.0"


__all__ = [
    "__version__",
    "boundary",
    "constants",
    "density",
    "estimators",
    "grid",
    "idw",
    "models",
    "normalization",
    "projection",
]

from . import boundary
from . import constants
from . import density
from . import estimators
from . import grid
from . import idw
from . import models
from . import normalization
from . import projection
