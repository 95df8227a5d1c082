import pathlib

module_path = pathlib.Path(__file__).parent
MODULE_PATH = module_path

from . import algorithm
from . import hardware
from . import amplifier
