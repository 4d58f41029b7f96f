from __future__ import annotations

import copy
import logging
import re
from enum import IntEnum
from typing import TYPE_CHECKING

from .exceptions import MultipartParseError
from .fieldpath import merge_field
from .uploads import UploadedFile, UploadError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterator
    from typing import Any, Protocol, TypedDict

    class SupportsFormData(Protocol):
        """The parts of a server request that the parser reads and produces."""

        def body(self) -> bytes: ...
        def has_header(self, name: str) -> bool: ...
        def header_line(self, name: str) -> str: ...
        def parsed_body(self) -> dict[str, Any] | None: ...
        def uploaded_files(self) -> dict[str, Any]: ...
        def with_parsed_body(self, parsed_body: dict[str, Any]) -> SupportsFormData: ...
        def with_uploaded_files(self, uploaded_files: dict[str, Any]) -> SupportsFormData: ...

    class FormDataConfig(TypedDict):
        DEFAULT_MEDIA_TYPE: str
        CHARSET: str
        CHARSET_ERRORS: str
        MAX_FILE_SIZE: int | None
        MAX_FILE_SIZE_FIELD: str

    Headers = dict[str, list[str]]
    Parameters = list[tuple[str, str | None]]


CRLF = b"\r\n"
BLANK_LINE = b"\r\n\r\n"
DELIMITER_DASHES = b"--"
SNIFF_PREFIX = b"---"
BOUNDARY_PARAM = "boundary="
QUOTE = '"'

# Leading integer of a MAX_FILE_SIZE value, e.g. "1024" or " 1024 bytes".
INTEGER_RE = re.compile(r"\s*([+-]?\d+)")

logger = logging.getLogger(__name__)


class PartKind(IntEnum):
    IGNORE = 0
    FIELD = 1
    FILE = 2


def _unquote(value: str) -> str:
    if value.startswith(QUOTE):
        value = value[1:]
    if value.endswith(QUOTE):
        value = value[:-1]
    return value


def resolve_boundary(content_type: str | None, body: bytes) -> bytes | None:
    """
    Find the multipart boundary for a body.

    The boundary is taken from the ``boundary=`` parameter of the
    Content-Type header, if there is one, up to the end of the header value
    and with optional surrounding quotes removed.  Failing that, it is
    sniffed from the first line of the body: a body that starts with ``---``
    and has a line break begins with a delimiter line, and the boundary is
    that line without its two leading dashes (and without a trailing ``--``).

    Returns None if no boundary can be found.
    """
    if content_type:
        _, found, value = content_type.partition(BOUNDARY_PARAM)
        if found:
            boundary = _unquote(value.strip())
            if boundary:
                logger.debug("Using boundary from Content-Type header: %r", boundary)
                return boundary.encode("latin-1")

    if body.startswith(SNIFF_PREFIX):
        eol = body.find(CRLF)
        if eol != -1:
            sniffed = body[len(DELIMITER_DASHES) : eol]
            if sniffed.endswith(DELIMITER_DASHES):
                sniffed = sniffed[: -len(DELIMITER_DASHES)]
            if sniffed:
                logger.debug("Sniffed boundary from first line of body: %r", sniffed)
                return sniffed

    return None


def split_parts(body: bytes, boundary: bytes) -> Iterator[tuple[int, bytes]]:
    """
    Cut a body into its raw parts.

    Yields ``(offset, chunk)`` pairs in body order, where ``offset`` is the
    position of the chunk in the body.  Anything before the first delimiter
    (the preamble) and after the last one (the closing ``--`` and the
    epilogue) is never yielded.  A single trailing CRLF is removed from each
    chunk, and chunks left with nothing but whitespace are skipped.
    """
    delimiter = DELIMITER_DASHES + boundary
    start = body.find(delimiter)
    if start == -1:
        return
    if start > 0:
        logger.debug("Skipping %d bytes of preamble", start)
    start += len(delimiter)

    while True:
        end = body.find(delimiter, start)
        if end == -1:
            break

        chunk = body[start:end]
        if chunk.endswith(CRLF):
            chunk = chunk[: -len(CRLF)]
        if chunk.strip():
            yield start, chunk
        else:
            logger.debug("Skipping blank part at %d", start)
        start = end + len(delimiter)


def parse_part_headers(block: bytes, charset: str = "latin-1", errors: str = "strict") -> Headers:
    """
    Parse the header block of a part.

    Returns a dictionary mapping each lower-cased header name to the list of
    ``;``-separated, trimmed tokens of its value.  Tokens keep their order,
    since the first one (e.g. ``form-data``) is not a parameter.  If a header
    appears more than once, the first one wins.
    """
    headers: Headers = {}
    for line in block.strip().decode(charset, errors).split("\r\n"):
        if not line:
            continue

        name, colon, value = line.partition(":")
        if not colon:
            logger.warning("Header line without a colon: %r", line)

        name = name.strip().lower()
        if name in headers:
            logger.debug("Ignoring repeated header %r", name)
            continue
        headers[name] = [token.strip() for token in value.split(";")]

    return headers


def parse_parameters(tokens: list[str]) -> Parameters:
    """
    Split header tokens into ``(key, value)`` pairs.

    Each token is split on its first ``=``; the key is lower-cased, and the
    value loses optional surrounding double quotes.  Tokens without an ``=``
    (such as ``form-data``) have a value of None.
    """
    params: Parameters = []
    for token in tokens:
        key, equals, value = token.partition("=")
        params.append((key.strip().lower(), _unquote(value.strip()) if equals else None))
    return params


def _first_param(params: Parameters, key: str) -> str | None:
    for k, v in params:
        if k == key and v is not None:
            return v
    return None


def classify_part(headers: Headers) -> PartKind:
    """
    Decide what a part is from its Content-Disposition header.

    A ``filename`` parameter makes it a file, even if the body is empty.
    Otherwise a ``name`` parameter makes it a field.  Parts without a
    disposition, or with neither parameter, are ignored.
    """
    disposition = headers.get("content-disposition")
    if disposition is None:
        return PartKind.IGNORE

    keys = {k for k, _ in parse_parameters(disposition)}
    if "filename" in keys:
        return PartKind.FILE
    if "name" in keys:
        return PartKind.FIELD
    return PartKind.IGNORE


def parse_max_file_size(value: str) -> int | None:
    """
    Interpret the value of a MAX_FILE_SIZE field.

    The leading integer of the value is used, so ``"1024 bytes"`` is 1024.
    Zero, and values that do not start with an integer, mean "no limit" and
    return None.
    """
    m = INTEGER_RE.match(value)
    if m is None:
        logger.warning("MAX_FILE_SIZE is not an integer, removing limit: %r", value)
        return None
    return int(m.group(1)) or None


class ParseState:
    """
    Everything that is carried from one part to the next during a parse.

    ``max_file_size`` is the size limit for files seen from now on; it is
    only changed by MAX_FILE_SIZE fields, so files that come before such a
    field are not affected by it.
    """

    def __init__(
        self,
        max_file_size: int | None = None,
        parsed_body: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> None:
        self.max_file_size = max_file_size
        self.parsed_body: dict[str, Any] = parsed_body if parsed_body is not None else {}
        self.files: dict[str, Any] = files if files is not None else {}

    def __repr__(self) -> str:
        return "{}(max_file_size={!r}, fields={}, files={})".format(
            self.__class__.__name__, self.max_file_size, len(self.parsed_body), len(self.files)
        )


class MultipartParser:
    """
    This class parses a complete, buffered ``multipart/form-data`` body into
    a nested dictionary of fields and a nested dictionary of
    :class:`UploadedFile` objects.  Field names in bracket notation are
    expanded, so ``user[name]`` is stored as ``{"user": {"name": ...}}`` and
    ``tags[]`` appends to a list.

    The parser holds only configuration; every call to :meth:`parse` starts
    from fresh state, so one instance can be reused.

    Valid configuration keys:

    .. list-table::
       :widths: 15 5 5 30
       :header-rows: 1

       * - Name
         - Type
         - Default
         - Description
       * - DEFAULT_MEDIA_TYPE
         - `str`
         - ``application/octet-stream``
         - The media type given to files whose part has no Content-Type.
       * - CHARSET
         - `str`
         - ``utf-8``
         - Used to turn header and field bytes into strings.
       * - CHARSET_ERRORS
         - `str`
         - ``surrogateescape``
         - The error handler for CHARSET.  The default loses no bytes.
       * - MAX_FILE_SIZE
         - `int`
         - None
         - The file size limit in effect before any MAX_FILE_SIZE field.
       * - MAX_FILE_SIZE_FIELD
         - `str`
         - ``MAX_FILE_SIZE``
         - The name of the field that sets the file size limit.  It is
           compared case-insensitively against the top-level name.

    :param config: A dictionary of configuration values, as above.
    """

    DEFAULT_CONFIG: FormDataConfig = {
        "DEFAULT_MEDIA_TYPE": "application/octet-stream",
        "CHARSET": "utf-8",
        "CHARSET_ERRORS": "surrogateescape",
        "MAX_FILE_SIZE": None,
        "MAX_FILE_SIZE_FIELD": "MAX_FILE_SIZE",
    }

    def __init__(self, config: dict[Any, Any] = {}) -> None:
        self.logger = logging.getLogger(__name__)

        self.config: FormDataConfig = self.DEFAULT_CONFIG.copy()
        self.config.update(config)  # type: ignore[typeddict-item]

        max_file_size = self.config["MAX_FILE_SIZE"]
        if max_file_size is not None and (not isinstance(max_file_size, int) or max_file_size < 1):
            raise ValueError("MAX_FILE_SIZE must be a positive integer or None, not %r" % max_file_size)

    def parse(
        self,
        body: bytes,
        content_type: str | None = None,
        parsed_body: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Parse a body and return the ``(parsed_body, files)`` pair.

        Values are merged into copies of the given ``parsed_body`` and
        ``files``, which are left untouched.  If the body has no boundary,
        it is not multipart, and the copies are returned as they are.
        """
        state = ParseState(
            max_file_size=self.config["MAX_FILE_SIZE"],
            parsed_body=copy.deepcopy(parsed_body) if parsed_body is not None else None,
            files=copy.deepcopy(files) if files is not None else None,
        )
        self._run(state, body, content_type)
        return state.parsed_body, state.files

    def parse_request(self, request: SupportsFormData) -> SupportsFormData:
        """
        Parse the body of a request, and return a request that carries the
        parsed fields and uploaded files.  Requests whose body has no
        boundary are returned unchanged.
        """
        content_type = request.header_line("content-type") if request.has_header("content-type") else None
        state = ParseState(
            max_file_size=self.config["MAX_FILE_SIZE"],
            parsed_body=copy.deepcopy(request.parsed_body()),
            files=copy.deepcopy(request.uploaded_files()),
        )
        if not self._run(state, request.body(), content_type):
            return request

        return request.with_parsed_body(state.parsed_body).with_uploaded_files(state.files)

    def _run(self, state: ParseState, body: bytes, content_type: str | None) -> bool:
        # Returns False if the body has no boundary, i.e. is not multipart.
        if not isinstance(body, (bytes, bytearray)):
            raise TypeError("body must be bytes, not %r" % type(body).__name__)
        body = bytes(body)

        boundary = resolve_boundary(content_type, body)
        if boundary is None:
            self.logger.debug("No boundary found, body is not multipart")
            return False

        for offset, chunk in split_parts(body, boundary):
            self._parse_part(state, offset, chunk)
        return True

    def _parse_part(self, state: ParseState, offset: int, chunk: bytes) -> None:
        head, separator, body = chunk.partition(BLANK_LINE)
        if not separator:
            msg = "Part at offset %d has no blank line after its headers" % offset
            self.logger.warning(msg)
            e = MultipartParseError(msg)
            e.offset = offset
            raise e

        headers = parse_part_headers(head, self.config["CHARSET"], self.config["CHARSET_ERRORS"])
        kind = classify_part(headers)
        self.logger.debug("Part at offset %d is a %s", offset, kind.name)

        if kind == PartKind.FILE:
            self._parse_file(state, headers, body)
        elif kind == PartKind.FIELD:
            self._parse_field(state, headers, body)

    def _parse_file(self, state: ParseState, headers: Headers, body: bytes) -> None:
        params = parse_parameters(headers["content-disposition"])
        field_name = _first_param(params, "name")
        filename = _first_param(params, "filename")
        if field_name is None or filename is None:
            self.logger.debug("Ignoring file part without both name and filename")
            return

        merge_field(state.files, field_name, self._make_file(state, headers, filename, body))

    def _make_file(self, state: ParseState, headers: Headers, filename: str, body: bytes) -> UploadedFile:
        media_type = headers.get("content-type", [""])[0]
        if not media_type:
            media_type = self.config["DEFAULT_MEDIA_TYPE"]
            self.logger.warning("File %r has no Content-Type, using %r", filename, media_type)

        size = len(body)

        # No file selected: the form had a file input that was left empty.
        if size == 0 and filename == "":
            return UploadedFile(b"", 0, UploadError.NO_FILE, filename, media_type)

        if state.max_file_size is not None and size > state.max_file_size:
            self.logger.warning(
                "File %r is %d bytes, larger than MAX_FILE_SIZE of %d", filename, size, state.max_file_size
            )
            return UploadedFile(b"", size, UploadError.FORM_SIZE, filename, media_type)

        return UploadedFile(body, size, UploadError.OK, filename, media_type)

    def _parse_field(self, state: ParseState, headers: Headers, body: bytes) -> None:
        value = body.decode(self.config["CHARSET"], self.config["CHARSET_ERRORS"])
        limit_field = self.config["MAX_FILE_SIZE_FIELD"].upper()

        for key, name in parse_parameters(headers["content-disposition"]):
            if key != "name" or name is None:
                continue

            path = merge_field(state.parsed_body, name, value)
            if path.root.upper() == limit_field:
                state.max_file_size = parse_max_file_size(value)
                self.logger.info("File size limit is now %r", state.max_file_size)

    def __repr__(self) -> str:
        return "%s()" % self.__class__.__name__


def parse_multipart(
    body: bytes, content_type: str | None = None, config: dict[Any, Any] = {}
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Parse a buffered multipart body, returning the ``(parsed_body, files)``
    pair.  This is a shortcut for ``MultipartParser(config).parse(...)``.

    :param body: The complete request body.
    :param content_type: The value of the Content-Type header, if any.
    :param config: Configuration for the :class:`MultipartParser`.
    """
    return MultipartParser(config).parse(body, content_type)


def parse_request(request: SupportsFormData, config: dict[Any, Any] = {}) -> SupportsFormData:
    """
    Parse the multipart body of a request.

    The request must provide ``body()``, ``has_header()``, ``header_line()``,
    ``parsed_body()``, ``uploaded_files()``, ``with_parsed_body()`` and
    ``with_uploaded_files()``; :class:`formdata.request.ServerRequest` is one
    such class.  The returned request carries the parsed fields and files
    merged into whatever the given request already had.
    """
    return MultipartParser(config).parse_request(request)
