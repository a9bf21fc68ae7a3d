"""Small XML helpers shared by the Gen2 and Gen3 parsers.

Payloads come from a network peer, so parsing goes through defusedxml which
rejects entity expansion and external DTD tricks.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree

from ..errors import UnmarshalError
from .models import Counter, TaskManager

_UINT = re.compile(r"[0-9]+")


def parse_document(data: bytes, source: str, root_tag: str) -> Element:
    """Brief: Parse ``data`` and check the document element name.

    Inputs:
      - data: Raw response body.
      - source: Label used in error messages (usually the URI).
      - root_tag: Expected root element name (``isc`` or ``statistics``).

    Outputs:
      - Element: The document root.

    Raises:
      - UnmarshalError: malformed XML, forbidden constructs, or an unexpected
        root element.
    """

    try:
        root = ElementTree.fromstring(data)
    except (ElementTree.ParseError, DefusedXmlException, ValueError) as exc:
        raise UnmarshalError(source, exc) from exc

    if root.tag != root_tag:
        raise UnmarshalError(
            source, f"expected element type <{root_tag}> but have <{root.tag}>"
        )
    return root


def to_uint(text: Optional[str], source: str, what: str) -> int:
    """Brief: Convert element text to a non-negative int.

    Inputs:
      - text: Element text; None or blank counts as 0.
      - source: Label for error messages.
      - what: Name of the field being converted.

    Outputs:
      - int value.

    Raises:
      - UnmarshalError: when the text is not an unsigned integer.
    """

    if text is None or not text.strip():
        return 0
    raw = text.strip()
    if not _UINT.fullmatch(raw):
        raise UnmarshalError(source, f"invalid counter value {raw!r} for {what}")
    return int(raw)


def child_uint(parent: Optional[Element], tag: str, source: str) -> int:
    if parent is None:
        return 0
    node = parent.find(tag)
    if node is None:
        return 0
    return to_uint(node.text, source, tag)


def named_counters(elements: Iterable[Element], source: str) -> List[Counter]:
    """Brief: Read Gen2-style ``<x><name>N</name><counter>V</counter></x>`` items.

    Inputs:
      - elements: Iterable of container elements, in document order.
      - source: Label for error messages.

    Outputs:
      - list[Counter] in the same order.
    """

    out: List[Counter] = []
    for elem in elements:
        name = (elem.findtext("name") or "").strip()
        out.append(Counter(name, to_uint(elem.findtext("counter"), source, name)))
    return out


def thread_model(taskmgr: Optional[Element], source: str) -> TaskManager:
    """Read ``taskmgr/thread-model`` into a TaskManager (zeros when absent)."""

    model = taskmgr.find("thread-model") if taskmgr is not None else None
    return TaskManager(
        tasks_running=child_uint(model, "tasks-running", source),
        worker_threads=child_uint(model, "worker-threads", source),
    )
