"""Decoding of bracketed form field names, and merging of values into the
nested structure they address.

A field name such as ``user[address][city]`` addresses a value three levels
deep, and an empty bracket pair (``tags[]``) appends to a list::

    >>> tree = {}
    >>> merge_field(tree, "user[address][city]", "Berlin")
    >>> merge_field(tree, "tags[]", "a")
    >>> merge_field(tree, "tags[]", "b")
    >>> tree
    {'user': {'address': {'city': 'Berlin'}}, 'tags': ['a', 'b']}
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:  # pragma: no cover
    from typing import Any, Dict, List, Union

    from .uploads import UploadedFile

    Value = Union[str, UploadedFile]
    Tree = Dict[str, Any]
    Node = Union[Value, Tree, List[Any]]

logger = logging.getLogger(__name__)

OPEN_BRACKET = "["
CLOSE_BRACKET = "]"


class PathState(IntEnum):
    ROOT = 0
    DESCEND = 1
    DONE = 2


class FieldPath(NamedTuple):
    """A decoded field name.

    ``root`` is the top-level key.  ``keys`` are the bracketed keys below it,
    in order.  If ``append`` is set, the value is pushed onto a list found
    after walking all of ``keys``; otherwise it is assigned at the last key
    (or directly at ``root`` when there are no keys and no brackets).
    """

    root: str
    keys: tuple[str, ...] = ()
    append: bool = False

    @property
    def nested(self) -> bool:
        return bool(self.keys) or self.append


def decode_field_path(name: str) -> FieldPath:
    """Decode a possibly-bracketed field name into a :class:`FieldPath`.

    The name is split on ``[``.  A segment that is exactly ``]`` is the
    append marker and ends the path; anything after it is ignored.  Other
    segments lose one trailing ``]`` and become keys.
    """
    segments = name.split(OPEN_BRACKET)
    root = segments[0]
    keys: list[str] = []
    append = False

    state = PathState.ROOT
    for segment in segments[1:]:
        if state == PathState.DONE:
            logger.debug("Ignoring path segment %r after append marker in %r", segment, name)
            continue

        state = PathState.DESCEND
        if segment == CLOSE_BRACKET:
            append = True
            state = PathState.DONE
            continue

        if segment.endswith(CLOSE_BRACKET):
            segment = segment[:-1]
        keys.append(segment)

    if state == PathState.ROOT:
        return FieldPath(root)
    return FieldPath(root, tuple(keys), append)


def _next_index(mapping: Tree) -> str:
    indices = [int(k) for k in mapping if k.isascii() and k.isdigit()]
    return str(max(indices) + 1) if indices else "0"


def _as_mapping(node: Node | None) -> Tree:
    # Lists are re-keyed by position so that keyed access can follow appends.
    if isinstance(node, dict):
        return node
    if isinstance(node, list):
        return {str(i): v for i, v in enumerate(node)}
    return {}


def _descend(container: Tree, key: str) -> Tree:
    child = container.get(key)
    if not isinstance(child, dict):
        child = _as_mapping(child)
        container[key] = child
    return child


def _push(container: Tree, key: str, value: Value) -> None:
    target = container.get(key)
    if isinstance(target, list):
        target.append(value)
    elif isinstance(target, dict):
        target[_next_index(target)] = value
    else:
        container[key] = [value]


def merge_path(tree: Tree, path: FieldPath, value: Value) -> None:
    """Merge ``value`` into ``tree`` at ``path``, creating containers on the
    way.  The tree is modified in place.
    """
    if not path.nested:
        tree[path.root] = value
        return

    keys = (path.root,) + path.keys
    container = tree
    for key in keys[:-1]:
        container = _descend(container, key)

    if path.append:
        _push(container, keys[-1], value)
    else:
        container[keys[-1]] = value


def merge_field(tree: Tree, name: str, value: Value) -> FieldPath:
    """Decode ``name`` and merge ``value`` into ``tree`` at the resulting
    path.  Returns the decoded path.
    """
    path = decode_field_path(name)
    merge_path(tree, path, value)
    return path
