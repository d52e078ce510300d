"""
Stratum - provider-agnostic resource orchestration

Layered configuration plus declarative object types whose operations are
dispatched to business-rule handlers or backend controllers.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("stratum")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Stratum Contributors"

from stratum.config import Account, Config, Settings  # noqa: E402
from stratum.core import Dispatcher, ResolvedList, ResolvedObject  # noqa: E402
from stratum.model import SchemaRegistry  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "Account",
    "Config",
    "Dispatcher",
    "ResolvedList",
    "ResolvedObject",
    "SchemaRegistry",
    "Settings",
]
