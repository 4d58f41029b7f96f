from __future__ import annotations

import copy
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Mapping
    from typing import Any, Union

    HeaderValue = Union[str, bytes, Iterable[Union[str, bytes]]]


def _header_values(value: HeaderValue) -> list[str]:
    if isinstance(value, bytes):
        return [value.decode("latin-1")]
    if isinstance(value, str):
        return [value]
    return [v.decode("latin-1") if isinstance(v, bytes) else v for v in value]


class ServerRequest:
    """A minimal, immutable server-side request.

    This carries just what the form-data parser reads and produces: the
    buffered body, the headers, and the two parsed collections.  The
    ``with_*`` methods return modified copies and leave the original
    untouched.

    Header names are case-insensitive.  A header may be given as a single
    value or a list of values; :meth:`header_line` joins multiple values with
    a comma, as HTTP allows.
    """

    def __init__(
        self,
        headers: Mapping[str, HeaderValue] | None = None,
        body: bytes = b"",
        parsed_body: dict[str, Any] | None = None,
        uploaded_files: dict[str, Any] | None = None,
    ) -> None:
        if not isinstance(body, (bytes, bytearray)):
            raise TypeError("body must be bytes, not %r" % type(body).__name__)

        self._headers: dict[str, list[str]] = {}
        for name, value in (headers or {}).items():
            self._headers.setdefault(name.lower(), []).extend(_header_values(value))

        self._body = bytes(body)
        self._parsed_body = parsed_body
        self._uploaded_files = uploaded_files if uploaded_files is not None else {}

    def body(self) -> bytes:
        return self._body

    def has_header(self, name: str) -> bool:
        return name.lower() in self._headers

    def header_line(self, name: str) -> str:
        return ", ".join(self._headers.get(name.lower(), []))

    def parsed_body(self) -> dict[str, Any] | None:
        return self._parsed_body

    def uploaded_files(self) -> dict[str, Any]:
        return self._uploaded_files

    def with_parsed_body(self, parsed_body: dict[str, Any] | None) -> ServerRequest:
        new = copy.copy(self)
        new._parsed_body = parsed_body
        return new

    def with_uploaded_files(self, uploaded_files: dict[str, Any]) -> ServerRequest:
        new = copy.copy(self)
        new._uploaded_files = uploaded_files
        return new

    def __repr__(self) -> str:
        return "{}(headers={!r}, body_size={})".format(self.__class__.__name__, self._headers, len(self._body))
