"""Typed handles to storage entries.

A node pairs a :class:`~path_uri.PathUri` with the backend it lives on.
Nodes hold no storage state of their own (apart from the cached contents
of a :class:`File`); every query and mutation is delegated to the backend,
which is always passed explicitly.
"""
import copy
import enum
from typing import Optional

from path_uri import PathUri

LOCK_SH = 1
LOCK_EX = 2
LOCK_UN = 8

SORT_NONE = 0
SORT_ASCENDING = 1
SORT_DESCENDING = 2


class NodeKind(enum.Enum):
    """The result of classifying a path on a backend"""

    FILE = "file"
    DIRECTORY = "directory"
    LINK = "link"
    NOT_FOUND = "not_found"


class Node:
    kind = None  # type: Optional[NodeKind]

    def __init__(self, path, backend) -> None:
        if backend is None:
            raise ValueError("a node needs a backend")
        self._backend = backend
        self._path = PathUri.parse(path, backend.separator)

    @property
    def path(self) -> PathUri:
        return self._path

    @property
    def backend(self):
        return self._backend

    @property
    def filename(self) -> str:
        return self._path.filename

    @property
    def basename(self) -> str:
        return self._path.basename

    @property
    def extension(self) -> str:
        return self._path.extension

    def with_path(self, path):
        """Return a copy of this node pointing at ``path`` on the same backend"""
        return self.rebind(path, self._backend)

    def rebind(self, path, backend):
        """Return a copy of this node pointing at ``path`` on ``backend``"""
        clone = copy.copy(self)
        clone._backend = backend
        clone._path = PathUri.parse(path, backend.separator)
        return clone

    def is_exists(self) -> bool:
        return self._backend.is_exists(self)

    def is_readable(self) -> bool:
        return self._backend.is_readable(self)

    def is_writable(self) -> bool:
        return self._backend.is_writable(self)

    def get_owner(self):
        return self._backend.get_owner(self)

    def get_group(self):
        return self._backend.get_group(self)

    def get_perms(self):
        return self._backend.get_perms(self)

    def chmod(self, mode):
        self._backend.chmod(self, mode)
        return self

    def chown(self, user):
        self._backend.chown(self, user)
        return self

    def chgrp(self, group):
        self._backend.chgrp(self, group)
        return self

    def get_atime(self):
        return self._backend.get_atime(self)

    def get_ctime(self):
        return self._backend.get_ctime(self)

    def get_mtime(self):
        return self._backend.get_mtime(self)

    def dir_up(self) -> "Directory":
        return self._backend.dir_up(self)

    def copy(self, dest):
        self._backend.copy(self, dest)
        return self

    def move(self, dest) -> "Node":
        """Move this node into (or onto) ``dest`` and return the node at its new location"""
        return self._backend.move(self, dest)

    def rename(self, new_name) -> "Node":
        """Rename this node and return the node at its new location"""
        return self._backend.rename(self, new_name)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.kind is other.kind and self._path == other._path and self._backend is other._backend

    def __hash__(self) -> int:
        return hash((self.kind, self._path))

    def __str__(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {str(self._path)!r}>"


class File(Node):
    """
    A regular file

    The contents are read from the backend on first request and cached on
    the node, ``put_contents`` writes the cache back.
    """

    kind = NodeKind.FILE

    def __init__(self, path, backend, contents=None) -> None:
        super().__init__(path, backend)
        self._contents = None
        if contents is not None:
            self.set_contents(contents)

    def get_contents(self, refresh=False) -> bytes:
        if self._contents is None or refresh:
            self._contents = self._backend.get_contents(self)
        return self._contents

    def set_contents(self, contents):
        """Replace the cached contents without touching storage"""
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        self._contents = bytes(contents)
        return self

    def put_contents(self, contents=None):
        """
        Write the contents to storage, creating missing parent directories

        Args:
            contents (bytes | str): New contents, the cached contents are written when omitted

        Raises:
            ValueError: If there is nothing to write
        """
        if contents is not None:
            self.set_contents(contents)
        if self._contents is None:
            raise ValueError(f"no contents to write to {self._path}")
        self._backend.put_contents(self, self._contents)
        return self

    def get_size(self) -> int:
        return self._backend.get_size(self)

    def unlink(self) -> None:
        self._backend.unlink(self)

    def lock(self, mode=LOCK_EX) -> bool:
        return self._backend.flock(self, mode)

    def unlock(self) -> bool:
        return self._backend.flock(self, LOCK_UN)

    def ch_atime(self, time=None):
        self._backend.ch_atime(self, time)
        return self

    def ch_mtime(self, time=None):
        self._backend.ch_mtime(self, time)
        return self


class Directory(Node):
    kind = NodeKind.DIRECTORY

    def mk_dir(self, mode=None):
        self._backend.mk_dir(self, mode)
        return self

    def rm_dir(self) -> None:
        self._backend.rm_dir(self)

    def scan_dir(self, sort=SORT_NONE):
        return self._backend.scan_dir(self, sort)

    def iter_nodes(self, sort=SORT_NONE):
        """Yield the entries of this directory as nodes"""
        for name in self.scan_dir(sort):
            yield self._backend.mk_from_path(self._path.child(name))


class Link(Node):
    """A symbolic link, ``target`` is read from the backend when not given"""

    kind = NodeKind.LINK

    def __init__(self, path, backend, target=None) -> None:
        super().__init__(path, backend)
        self._target = target

    @property
    def target(self) -> Node:
        if self._target is None:
            self._target = self._backend.link_read(self)
        return self._target

    @property
    def known_target(self) -> Optional[Node]:
        """the target if it was given or already read, without asking the backend"""
        return self._target

    def with_target(self, target):
        clone = copy.copy(self)
        clone._target = target
        return clone

    def mk_link(self):
        if self._target is None:
            raise ValueError(f"link {self._path} has no target")
        self._backend.mk_link(self)
        return self

    def unlink(self) -> None:
        self._backend.unlink(self)


NODE_TYPES = {
    NodeKind.FILE: File,
    NodeKind.DIRECTORY: Directory,
    NodeKind.LINK: Link,
}


def make_node(kind, path, backend) -> Node:
    """Create the node type matching ``kind``"""
    try:
        node_type = NODE_TYPES[kind]
    except KeyError:
        raise ValueError(f"cannot create a node of kind {kind}") from None
    return node_type(path, backend)
