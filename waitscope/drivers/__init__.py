"""
Drivers package
---------------
The driver boundary (protocols) and the Playwright adapter. The adapter is
imported lazily by callers so the core never needs a browser installed.
"""

from .base import Driver, RawMatch

__all__ = ["Driver", "RawMatch"]
