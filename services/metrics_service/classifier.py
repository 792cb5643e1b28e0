"""
Route → page category mapping used for the pages{home,api,other} tallies.
"""

from __future__ import annotations

from enum import Enum

_HOME_ROUTES = frozenset({"/", "/index"})
_API_PREFIX = "/api/"


class PageType(str, Enum):
    HOME = "home"
    API = "api"
    OTHER = "other"


def classify(route: str) -> PageType:
    """
    Classify a route identifier.

    "/" (and its "/index" alias) is home, anything under /api/ is api,
    everything else, including unknown or empty routes, is other.
    """
    if route in _HOME_ROUTES:
        return PageType.HOME
    if route.startswith(_API_PREFIX):
        return PageType.API
    return PageType.OTHER
