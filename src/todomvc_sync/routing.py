"""Hash-based routing for the visibility filter."""

import logging
import re
from typing import Tuple

from .domain import VisibilityFilter


logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(r"^#?/?")


def parse_fragment(fragment: str) -> Tuple[VisibilityFilter, str]:
    """Turn a URL fragment into a visibility filter.

    Args:
        fragment: Fragment such as ``"#/active"``, ``"/completed"`` or ``"all"``

    Returns:
        Tuple of (filter, fragment). Recognized fragments are normalized to
        ``"#/<name>"``; unrecognized ones select ``VisibilityFilter.ALL`` and
        clear the fragment to ``""``.
    """
    name = _PREFIX_RE.sub("", fragment or "", count=1)
    try:
        visibility = VisibilityFilter(name)
    except ValueError:
        return VisibilityFilter.ALL, ""
    return visibility, f"#/{visibility.value}"


class HashRouter:
    """Keeps a controller's visibility in sync with the URL fragment."""

    def __init__(self, controller, fragment: str = ""):
        self.controller = controller
        self.fragment = fragment
        self.navigate(fragment)

    def navigate(self, fragment: str) -> VisibilityFilter:
        """Handle a fragment change."""
        visibility, self.fragment = parse_fragment(fragment)
        if not self.fragment and fragment:
            logger.debug(f"Unknown route {fragment!r}, showing all todos")
        self.controller.set_visibility(visibility)
        return visibility
