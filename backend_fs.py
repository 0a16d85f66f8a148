from io import BytesIO
from typing import Text, Optional, Collection, Any, BinaryIO, List
import logging

import fs
import fs.base
import fs.enums
import fs.errors
import fs.info
import fs.mode
import fs.permissions
import fs.subfs

from fs_node import Directory, File, NodeKind, make_node
from path_uri import PathUri

log = logging.getLogger("nodefs.bridge")

RESOURCE_TYPES = {
    NodeKind.FILE: fs.enums.ResourceType.file,
    NodeKind.DIRECTORY: fs.enums.ResourceType.directory,
    NodeKind.LINK: fs.enums.ResourceType.symlink,
}


class NodeFile(BytesIO):
    """
    In-memory handle on a File node

    The node's contents are loaded when the handle is opened for reading
    or appending, and stored back in one piece when a writable handle is
    closed.

    Attributes:
        file (File): The node behind the handle
        mode (str): Binary mode string, as given to open
    """

    def __init__(self, file, mode="r", zero_size=False):
        super().__init__()
        _mode = fs.mode.Mode(mode)
        _mode.validate_bin()
        self.file: File = file
        self.name: str = str(file.path)
        self.mode: str = _mode.to_platform_bin()
        self._can_read: bool = _mode.reading
        self._can_write: bool = _mode.writing
        # a file that does not exist yet has nothing to load
        if (_mode.reading or _mode.appending) and not _mode.truncate and not zero_size:
            super().write(file.get_contents(refresh=True))
            if not _mode.appending:
                self.seek(0)

    def _require(self, allowed, action):
        if not allowed:
            raise OSError(f"{self.name} was not opened for {action} ({self.mode})")

    def readable(self) -> bool:
        return self._can_read

    def writable(self) -> bool:
        return self._can_write

    def read(self, size=-1) -> bytes:
        self._require(self._can_read, "reading")
        return super().read(size)

    def readinto(self, b) -> int:
        self._require(self._can_read, "reading")
        return super().readinto(b)

    def write(self, b) -> int:
        self._require(self._can_write, "writing")
        return super().write(b)

    def truncate(self, size=None):
        position = self.tell()
        length = self.getbuffer().nbytes
        size = position if size is None else size
        if size < 0:
            raise ValueError(f"negative size value {size}")
        if size < length:
            super().truncate(size)
        elif size > length:
            # pad with zero bytes up to the requested size
            self.seek(0, 2)
            super().write(bytes(size - length))
        self.seek(position)
        return size

    def close(self):
        if not self.closed and self._can_write:
            log.debug("storing %s", self.name)
            self.file.put_contents(self.getvalue())
        super().close()


class BackendFS(fs.base.FS):
    """
    Expose a nodefs backend through the PyFilesystem2 API

    Paths given to this filesystem start at the backend's ``/``, so the
    backend is usually an IsolatedBackend confined to some directory.
    """

    def __init__(self, backend) -> None:
        super().__init__()
        self.backend = backend
        self._meta = {
            "read_only": False,
            "unicode_paths": True,
            "case_insensitive": False,
            "supports_rename": False,
            "thread_safe": False,
        }

    def _node_path(self, path) -> PathUri:
        return PathUri.parse(self.validatepath(path), "/").with_separator(self.backend.separator)

    def _classify(self, path):
        _path = self._node_path(path)
        return _path, self.backend.classify(_path)

    def _optional(self, getter, node):
        try:
            return getter(node)
        except fs.errors.Unsupported:
            return None

    def getinfo(self, path, namespaces=None):
        # type: (Text, Optional[Collection[Text]]) -> fs.info.Info
        """
        Build the Info of the node at ``path``

        ``details`` and ``access`` are filled from the backend metadata, a
        value the backend cannot provide is left as None.
        """
        self.check()
        namespaces = namespaces or ()
        _path, kind = self._classify(path)
        if kind is NodeKind.NOT_FOUND:
            raise fs.errors.ResourceNotFound(path)
        node = make_node(kind, _path, self.backend)

        info = {"basic": {"name": node.filename, "is_dir": kind is NodeKind.DIRECTORY}}
        if "details" in namespaces:
            info["details"] = {
                "type": int(RESOURCE_TYPES[kind]),
                "size": self.backend.get_size(node) if kind is NodeKind.FILE else 0,
                "modified": self._optional(self.backend.get_mtime, node),
                "accessed": self._optional(self.backend.get_atime, node),
                "metadata_changed": self._optional(self.backend.get_ctime, node),
                "created": None,
            }
        if "access" in namespaces:
            perms = self._optional(self.backend.get_perms, node)
            info["access"] = {
                "user": self._optional(self.backend.get_owner, node),
                "group": self._optional(self.backend.get_group, node),
                "permissions": perms.dump() if perms is not None else None,
            }
        return fs.info.Info(info)

    def listdir(self, path):
        # type: (Text) -> List[Text]
        self.check()
        _path, kind = self._classify(path)
        if kind is NodeKind.NOT_FOUND:
            raise fs.errors.ResourceNotFound(path)
        elif kind is not NodeKind.DIRECTORY:
            raise fs.errors.DirectoryExpected(path)
        return self.backend.scan_dir(Directory(_path, self.backend))

    def makedir(
        self,
        path,  # type: Text
        permissions=None,  # type: Optional[fs.permissions.Permissions]
        recreate=False,  # type: bool
    ):
        # type: (...) -> fs.subfs.SubFS[fs.FS]
        """
        Create a single directory and return a SubFS rooted at it

        The parent must already exist. Without ``permissions`` the
        backend's default directory mode applies.
        """
        self.check()
        _path, kind = self._classify(path)
        if kind is not NodeKind.NOT_FOUND:
            if kind is NodeKind.DIRECTORY and recreate:
                return fs.subfs.SubFS(self, path)
            raise fs.errors.DirectoryExists(path)
        if self.backend.classify(_path.parent) is not NodeKind.DIRECTORY:
            raise fs.errors.ResourceNotFound(path)

        self.backend.mk_dir(Directory(_path, self.backend), permissions.mode if permissions else None)
        return fs.subfs.SubFS(self, path)

    def openbin(
        self,
        path,  # type: Text
        mode="r",  # type: Text
        buffering=-1,  # type: int
        **options  # type: Any
    ):
        # type: (...) -> BinaryIO
        """
        Open the file at ``path`` as a NodeFile

        The contents live in memory until the handle is closed, so
        ``buffering`` has no effect.
        """
        _mode = fs.mode.Mode(mode)
        _mode.validate_bin()
        self.check()
        _path, kind = self._classify(path)
        if kind is NodeKind.DIRECTORY:
            raise fs.errors.FileExpected(path)
        if _mode.create:
            if _mode.exclusive and kind is not NodeKind.NOT_FOUND:
                raise fs.errors.FileExists(path)
            if self.backend.classify(_path.parent) is not NodeKind.DIRECTORY:
                raise fs.errors.ResourceNotFound(path)
        elif kind is NodeKind.NOT_FOUND:
            raise fs.errors.ResourceNotFound(path)

        log.debug("opening %s (%s)", path, mode)
        return NodeFile(File(_path, self.backend), mode, zero_size=kind is NodeKind.NOT_FOUND)

    def remove(self, path):
        # type: (Text) -> None
        self.check()
        _path, kind = self._classify(path)
        if kind is NodeKind.NOT_FOUND:
            raise fs.errors.ResourceNotFound(path)
        elif kind is NodeKind.DIRECTORY:
            raise fs.errors.FileExpected(path)
        self.backend.unlink(make_node(kind, _path, self.backend))

    def removedir(self, path):
        # type: (Text) -> None
        """Remove an empty directory, never the root"""
        self.check()
        _path, kind = self._classify(path)
        if not _path.normalize().segments:
            raise fs.errors.RemoveRootError(path)
        if kind is NodeKind.NOT_FOUND:
            raise fs.errors.ResourceNotFound(path)
        elif kind is not NodeKind.DIRECTORY:
            raise fs.errors.DirectoryExpected(path)
        directory = Directory(_path, self.backend)
        if self.backend.scan_dir(directory):
            raise fs.errors.DirectoryNotEmpty(path)
        self.backend.rm_dir(directory)

    def setinfo(self, path, info):
        # type: (Text, fs.info.RawInfo) -> None
        # only the modified and accessed times can be changed
        self.check()
        _path, kind = self._classify(path)
        if kind is NodeKind.NOT_FOUND:
            raise fs.errors.ResourceNotFound(path)
        node = make_node(kind, _path, self.backend)
        details = info.get("details", {})
        if details.get("modified") is not None:
            self.backend.ch_mtime(node, details["modified"])
        if details.get("accessed") is not None:
            self.backend.ch_atime(node, details["accessed"])

    def validatepath(self, path: Text) -> Text:
        if not path.isprintable():
            raise fs.errors.InvalidCharsInPath(path)
        return super().validatepath(path)

    def __repr__(self) -> str:
        return f"BackendFS({self.backend!r})"
