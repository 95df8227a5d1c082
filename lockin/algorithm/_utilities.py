import json
import logging
from typing import TypeVar, Type

import dacite

import lockin


T = TypeVar("T")

CONFIGURATION_PATH = f"{lockin.MODULE_PATH}/algorithm/configs/algorithm.json"


def load_configuration(type_name: Type[T], scope: str, key: str, path: str = CONFIGURATION_PATH) -> T:
    """
    Loads the section Algorithm/<scope>/<key> of the JSON configuration into the given dataclass.
    If the file is missing or does not match the dataclass the defaults of the dataclass are used.
    """
    try:
        with open(path) as config:
            loaded_configuration = json.load(config)["Algorithm"]
            return dacite.from_dict(type_name, loaded_configuration[scope][key])
    except (dacite.DaciteError, json.decoder.JSONDecodeError, FileNotFoundError, KeyError):
        logging.error("Could not load %s/%s from %s, using defaults", scope, key, path)
        return type_name()
