# waitscope/finders/__init__.py
"""
Finders package
---------------
Locators (what to look for) and the single-attempt ElementFinder that
turns the driver's raw matches into one element according to the match
policy.
"""

from .locator import Locator, LocatorKind
from .finder import ElementFinder

__all__ = [
    "Locator",
    "LocatorKind",
    "ElementFinder",
]
