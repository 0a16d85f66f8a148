"""Errors raised by nodefs backends.

Every error is a subclass of the PyFilesystem2 error hierarchy, so
callers can catch ``fs.errors.FSError`` (or the more specific
``fs.errors.ResourceNotFound``, ``fs.errors.OperationFailed``,
``fs.errors.Unsupported``...) whatever backend raised it.
"""
import fs.errors


class PathNotRecognized(fs.errors.ResourceNotFound):
    """The path is neither a file, a directory nor a link."""

    default_message = "path '{path}' is not recognized as a file, directory or link"


class CopyFailed(fs.errors.OperationFailed):
    default_message = "error while copying '{path}' to '{dest}': {details}"

    def __init__(self, path=None, dest=None, exc=None, msg=None):
        self.dest = dest
        super().__init__(path=path, exc=exc, msg=msg)


class MoveFailed(fs.errors.OperationFailed):
    default_message = "error while moving '{path}' to '{dest}': {details}"

    def __init__(self, path=None, dest=None, exc=None, msg=None):
        self.dest = dest
        super().__init__(path=path, exc=exc, msg=msg)


class RootEscape(fs.errors.PermissionDenied):
    """A real path does not lie within the root of an isolated backend."""

    default_message = "path '{path}' lies outside of root '{root}'"

    def __init__(self, path=None, root=None, exc=None, msg=None):
        self.root = root
        super().__init__(path=path, exc=exc, msg=msg)
