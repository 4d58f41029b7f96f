from __future__ import annotations

import logging
import os
from enum import IntEnum
from io import BytesIO
from typing import TYPE_CHECKING

from .exceptions import FileError

if TYPE_CHECKING:  # pragma: no cover
    from typing import Union

    StrOrBytesPath = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]

logger = logging.getLogger(__name__)


class UploadError(IntEnum):
    """Upload status codes, numbered like the ``UPLOAD_ERR_*`` constants that
    form-handling servers conventionally report.
    """

    #: The file was received completely.
    OK = 0
    #: The file is larger than the ``MAX_FILE_SIZE`` sent with the form.
    FORM_SIZE = 2
    #: The form had a file input, but no file was selected.
    NO_FILE = 4


class UploadedFile:
    """A single file received in a multipart body.

    Instances are immutable.  The content is held in memory; every access to
    :attr:`stream` returns a new, rewound stream over it, so readers never see
    each other's position.

    :param content: The raw bytes of the file.  Files that carry an error
                    keep no content.
    :param size: The size of the file as sent by the client.  For
                 :attr:`UploadError.FORM_SIZE` this is the rejected size, not
                 ``len(content)``.
    :param error: One of :class:`UploadError`.
    :param client_filename: The file name the client sent, possibly empty.
    :param client_media_type: The media type the client sent.
    """

    __slots__ = ("_content", "_size", "_error", "_client_filename", "_client_media_type")

    def __init__(
        self,
        content: bytes,
        size: int,
        error: UploadError | int = UploadError.OK,
        client_filename: str = "",
        client_media_type: str = "",
    ) -> None:
        if not isinstance(content, (bytes, bytearray)):
            raise TypeError("content must be bytes, not %r" % type(content).__name__)
        if size < 0:
            raise ValueError("size must be a non-negative integer, not %r" % size)

        object.__setattr__(self, "_content", bytes(content))
        object.__setattr__(self, "_size", size)
        object.__setattr__(self, "_error", UploadError(error))
        object.__setattr__(self, "_client_filename", client_filename)
        object.__setattr__(self, "_client_media_type", client_media_type)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def __copy__(self) -> UploadedFile:
        return self

    def __deepcopy__(self, memo: dict[int, object]) -> UploadedFile:
        return self

    @property
    def stream(self) -> BytesIO:
        """A fresh stream positioned at the start of the content."""
        return BytesIO(self._content)

    @property
    def size(self) -> int:
        return self._size

    @property
    def error(self) -> UploadError:
        return self._error

    @property
    def client_filename(self) -> str:
        return self._client_filename

    @property
    def client_media_type(self) -> str:
        return self._client_media_type

    @property
    def ok(self) -> bool:
        """Whether this file was received without an error."""
        return self._error is UploadError.OK

    def read(self) -> bytes:
        return self._content

    def move_to(self, target_path: StrOrBytesPath) -> None:
        """Write the content of this file to the given path.

        Files that carry an error have nothing to write, and raise a
        :class:`FileError` instead.
        """
        if not self.ok:
            raise FileError("Cannot move file with upload error %s" % self._error.name)

        path = os.fspath(target_path)
        logger.info("Writing uploaded file to: %r", path)
        try:
            with open(path, "wb") as f:
                f.write(self._content)
        except OSError:
            logger.exception("Error writing uploaded file")
            raise FileError("Error writing uploaded file: %r" % path)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, UploadedFile):
            return (
                self._content == other._content
                and self._size == other._size
                and self._error == other._error
                and self._client_filename == other._client_filename
                and self._client_media_type == other._client_media_type
            )
        else:
            return NotImplemented

    def __hash__(self) -> int:
        return hash((self._content, self._size, self._error, self._client_filename, self._client_media_type))

    def __repr__(self) -> str:
        return "{}(client_filename={!r}, client_media_type={!r}, size={!r}, error={})".format(
            self.__class__.__name__,
            self._client_filename,
            self._client_media_type,
            self._size,
            self._error.name,
        )
