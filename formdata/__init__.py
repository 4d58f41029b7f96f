# This is the canonical package information.
__author__ = "The formdata authors"
__license__ = "Apache"
__copyright__ = "Copyright (c) 2026, The formdata authors"

from ._version import __version__
from .exceptions import FileError, FormDataError, MultipartParseError, ParseError
from .multipart import MultipartParser, parse_multipart, parse_request
from .request import ServerRequest
from .uploads import UploadedFile, UploadError

__all__ = (
    "__version__",
    "FileError",
    "FormDataError",
    "MultipartParseError",
    "MultipartParser",
    "ParseError",
    "ServerRequest",
    "UploadError",
    "UploadedFile",
    "parse_multipart",
    "parse_request",
)
