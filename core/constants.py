"""Global constants for the core package.

This module contains shared constants used across the tracking engine.
"""

from typing import Final

# HTTP Client Constants
HTTP_CONNECTION_LIMIT: Final[int] = 10
HTTP_TIMEOUT_CONNECT: Final[float] = 10.0
HTTP_TIMEOUT_SOCK_READ: Final[float] = 30.0
HTTP_TIMEOUT_TOTAL: Final[float] = 60.0

# Unit Conversion
MPS_TO_KMH: Final[float] = 3.6
METERS_PER_KM: Final[float] = 1000.0
SECONDS_PER_HOUR: Final[float] = 3600.0
