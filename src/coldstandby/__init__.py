"""
coldstandby - Replicate a mailcow deployment to a cold-standby host
"""

__version__ = "0.1.0"

from .core import ColdStandby
from .errors import StandbyError

__all__ = ["ColdStandby", "StandbyError"]
