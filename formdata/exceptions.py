class FormDataError(ValueError):
    """Base error class for our form-data parser."""


class ParseError(FormDataError):
    """This exception (or a subclass) is raised when there is an error while
    parsing something.
    """

    #: This is the offset in the request body at which the parse error
    #: occurred.  It will be -1 if not specified.
    offset = -1


class MultipartParseError(ParseError):
    """This is a specific error that is raised when the MultipartParser finds
    a part it cannot split into headers and body.
    """


class FileError(FormDataError, OSError):
    """Exception class for problems with the UploadedFile class."""
