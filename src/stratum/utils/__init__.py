"""
Utility functions for Stratum.

General-purpose utilities that don't belong to a specific domain.
"""

import stratum.utils.recursive_map as recursive_map
from stratum.utils.recursive_map import KeyPath

__all__ = ["KeyPath", "recursive_map"]
