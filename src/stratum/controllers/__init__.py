"""
Backend controllers.
"""

from stratum.controllers.base import Controller, QueryKey, get_attr, match_value, set_attr
from stratum.controllers.mock import MockController

__all__ = [
    "Controller",
    "MockController",
    "QueryKey",
    "get_attr",
    "match_value",
    "set_attr",
]
