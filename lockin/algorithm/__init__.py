from . import _utilities
from . import reference
from . import demodulation
from . import monitor
