"""
Process handler support.
"""

from stratum.process.base import ProcessContext

__all__ = ["ProcessContext"]
