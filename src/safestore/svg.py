# SPDX-License-Identifier: MIT
"""SVG detection and allow-list sanitization.

SVG can execute script through ``<script>``, event-handler attributes and
``javascript:`` URLs.  Everything outside a narrow allow-list of structural
tags, geometry/styling attributes and http(s) URLs is dropped, never escaped.
"""

from __future__ import annotations

import re

import nh3

from .errors import SanitizationError

ALLOWED_TAGS = frozenset(
    {"svg", "g", "path", "rect", "circle", "text", "line", "polygon", "polyline", "ellipse"}
)
ALLOWED_ATTRIBUTES = frozenset(
    {
        "style",
        "fill",
        "stroke",
        "d",
        "points",
        "x",
        "y",
        "cx",
        "cy",
        "r",
        "width",
        "height",
        "viewBox",
        "xlink:href",
    }
)
ALLOWED_URL_SCHEMES = frozenset({"http", "https"})

# nh3 matches attributes by local name, so "xlink:href" is allowed as "href".
_NH3_ATTRIBUTES = ALLOWED_ATTRIBUTES | {name.rpartition(":")[2] for name in ALLOWED_ATTRIBUTES}

# <!ENTITY name "value">
_ENTITY_RE = re.compile(r"""<!ENTITY\s+\S*\s*(?:"|')[^"]+(?:"|')\s*>""", re.IGNORECASE)
# <!DOCTYPE svg [ ... ]> including its internal subset
_DOCTYPE_SUBSET_RE = re.compile(r"<!DOCTYPE[^>\[]*\[[\s\S]*?\]\s*>", re.IGNORECASE)
# Every match starts at "[" or "<!", never inside a whitespace run.
_MARKUP_DECLARATION_RE = re.compile(r"(?:\[\s*)?<![A-Z]+[^>]*>(?:\s*<![A-Z]+[^>]*>)*\s*\]?")
_HTML_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")

# Only the opening tag is required: a first chunk may end long before </svg>.
SVG_ROOT_RE = re.compile(r"^\s*(?:<\?xml[^>]*>\s*)?(?:<!doctype svg[^>]*>\s*)?<svg[^>]*>", re.IGNORECASE)


def strip_declarations(text: str) -> str:
    """Remove DTD entity declarations, DTD markup declarations and HTML comments."""
    text = _ENTITY_RE.sub("", text)
    text = _DOCTYPE_SUBSET_RE.sub("", text)
    text = _MARKUP_DECLARATION_RE.sub("", text)
    return _HTML_COMMENT_RE.sub("", text)


def _allow_list(text: str) -> str:
    return nh3.clean(
        text,
        tags=set(ALLOWED_TAGS),
        attributes={"*": set(_NH3_ATTRIBUTES)},
        url_schemes=set(ALLOWED_URL_SCHEMES),
        strip_comments=True,
        link_rel=None,
    )


def is_svg(text: str) -> bool:
    """Whether *text* still opens with an ``<svg>`` element once sanitized.

    Works on partial documents, so the answer for a first chunk is
    provisional.
    """
    return SVG_ROOT_RE.match(_allow_list(strip_declarations(text))) is not None


def sanitize_svg(text: str) -> str:
    """Return a script-free rendition of the SVG document *text*.

    Raises:
        SanitizationError: If the sanitized output no longer starts with an
            ``<svg>`` root element.
    """
    sanitized = _allow_list(strip_declarations(text))
    if SVG_ROOT_RE.match(sanitized) is None:
        raise SanitizationError("Sanitized content is no longer a valid SVG document")
    return sanitized
