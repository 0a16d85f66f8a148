import abc
import logging
from typing import List, Optional

import fs.errors

from fs_errors import CopyFailed, MoveFailed, PathNotRecognized
from fs_node import (  # noqa: F401
    LOCK_EX,
    LOCK_SH,
    LOCK_UN,
    SORT_ASCENDING,
    SORT_DESCENDING,
    SORT_NONE,
    Directory,
    File,
    Link,
    Node,
    NodeKind,
    make_node,
)
from path_uri import PathUri

log = logging.getLogger("nodefs.backend")

DEFAULT_DIR_MODE = 0o755
DEFAULT_PARENT_MODE = 0o777


class BaseBackend(abc.ABC):
    """
    The capabilities every storage backend provides

    Concrete backends implement the storage primitives (abstract methods);
    the tree algorithms ``copy``, ``move``, ``rm_dir`` and ``mk_from_path``
    are written once here on top of them.

    Attributes:
        separator (str): The path separator of the storage
        default_dir_mode (int): Mode of directories created while copying into a directory
        default_parent_mode (int): Mode of parents created before copying onto a file
    """

    separator = "/"
    default_dir_mode = DEFAULT_DIR_MODE  # type: Optional[int]
    default_parent_mode = DEFAULT_PARENT_MODE  # type: Optional[int]

    def make_path(self, path) -> PathUri:
        return PathUri.parse(path, self.separator)

    def real_path(self, target) -> str:
        """The string form of a node or path, as handed to the storage"""
        if isinstance(target, Node):
            target = target.path
        return str(self.make_path(target))

    # navigation

    @abc.abstractmethod
    def get_cwd(self) -> Directory:
        ...

    @abc.abstractmethod
    def ch_dir(self, directory) -> None:
        ...

    @abc.abstractmethod
    def scan_dir(self, directory=None, sort=SORT_NONE) -> List[str]:
        """
        List the entry names of a directory, without ``.`` and ``..``

        Args:
            directory (Directory): The directory to list, the current directory when omitted
            sort (int): SORT_NONE, SORT_ASCENDING or SORT_DESCENDING

        Returns:
            list: The entry names
        """

    @staticmethod
    def _sort_names(names, sort=SORT_NONE):
        names = [name for name in names if name not in (".", "..")]
        if sort == SORT_ASCENDING:
            return sorted(names)
        if sort == SORT_DESCENDING:
            return sorted(names, reverse=True)
        return names

    # node types

    @abc.abstractmethod
    def classify(self, path) -> NodeKind:
        """Probe the storage once and tell what lives at ``path``"""

    def mk_from_path(self, path) -> Node:
        """
        Create the node matching what lives at ``path``

        Raises:
            PathNotRecognized: If nothing lives at ``path``
        """
        path = self.make_path(path)
        kind = self.classify(path)
        if kind is NodeKind.NOT_FOUND:
            raise PathNotRecognized(str(path))
        return make_node(kind, path, self)

    def _is_kind(self, target, kind):
        if isinstance(target, Node):
            return target.kind is kind
        return self.classify(target) is kind

    def is_file(self, target) -> bool:
        """a Node is checked by its type, a path is probed on the storage"""
        return self._is_kind(target, NodeKind.FILE)

    def is_dir(self, target) -> bool:
        return self._is_kind(target, NodeKind.DIRECTORY)

    def is_link(self, target) -> bool:
        return self._is_kind(target, NodeKind.LINK)

    @abc.abstractmethod
    def is_exists(self, node) -> bool:
        """Whether an entry of the node's own kind exists at its path"""

    # metadata

    @abc.abstractmethod
    def get_owner(self, node):
        ...

    @abc.abstractmethod
    def get_group(self, node):
        ...

    @abc.abstractmethod
    def get_perms(self, node):
        ...

    @abc.abstractmethod
    def chmod(self, node, mode) -> None:
        ...

    @abc.abstractmethod
    def chown(self, node, user) -> None:
        ...

    @abc.abstractmethod
    def chgrp(self, node, group) -> None:
        ...

    @abc.abstractmethod
    def get_atime(self, node) -> float:
        ...

    @abc.abstractmethod
    def get_ctime(self, node) -> float:
        ...

    @abc.abstractmethod
    def get_mtime(self, node) -> float:
        ...

    @abc.abstractmethod
    def get_size(self, node) -> int:
        ...

    @abc.abstractmethod
    def ch_atime(self, node, time=None) -> None:
        ...

    @abc.abstractmethod
    def ch_mtime(self, node, time=None) -> None:
        ...

    @abc.abstractmethod
    def is_readable(self, node) -> bool:
        ...

    @abc.abstractmethod
    def is_writable(self, node) -> bool:
        ...

    def get_free_space(self) -> Optional[int]:
        """Free bytes on the storage, None when the storage can't tell"""
        return None

    def get_total_space(self) -> Optional[int]:
        return None

    # contents

    @abc.abstractmethod
    def get_contents(self, file) -> bytes:
        ...

    @abc.abstractmethod
    def put_contents(self, file, contents) -> None:
        """Overwrite the file with ``contents``, creating missing parent directories first"""

    @abc.abstractmethod
    def flock(self, file, mode) -> bool:
        ...

    # tree

    @abc.abstractmethod
    def mk_dir(self, directory, mode=None) -> None:
        """Create the directory and its missing parents, an existing directory is not an error"""

    @abc.abstractmethod
    def _remove_dir(self, directory) -> None:
        """Remove a single, empty directory"""

    @abc.abstractmethod
    def rename(self, node, new_name) -> Node:
        ...

    def _rename_target(self, node, new_name) -> PathUri:
        """
        The path ``new_name`` designates, a bare name stays in the node's directory

        Raises:
            ValueError: If the bare name is ``.`` or ``..``
        """
        target = self.make_path(new_name)
        if len(target.segments) == 1 and not target.is_absolute:
            if target.segments[0] in (".", ".."):
                raise ValueError(f"cannot rename '{node.path}' to '{new_name}'")
            target = node.path.normalize().parent.child(new_name)
        return target

    @abc.abstractmethod
    def unlink(self, node) -> None:
        ...

    @abc.abstractmethod
    def mk_link(self, link) -> None:
        ...

    @abc.abstractmethod
    def link_read(self, link) -> Node:
        ...

    def rm_dir(self, directory) -> None:
        """
        Remove a directory and everything below it

        Raises:
            fs.errors.ResourceNotFound: If the directory does not exist
        """
        if not self.is_exists(directory):
            raise fs.errors.ResourceNotFound(str(directory.path))
        for name in self.scan_dir(directory):
            child = self.mk_from_path(directory.path.child(name))
            if isinstance(child, Directory):
                self.rm_dir(child)
            else:
                self.unlink(child)
        self._remove_dir(directory)
        log.debug("removed directory %s", directory)

    def copy(self, source, dest) -> None:
        """
        Copy a node into a directory or onto a file

        A file copied into a directory keeps its name. A directory copied
        into a directory is merged: each entry is copied again, files into
        the destination, subdirectories into the destination's subdirectory
        of the same name. Missing destination directories are created.

        Args:
            source (Node): The node to copy, it must exist
            dest (Directory | File): Where to copy to

        Raises:
            fs.errors.ResourceNotFound: If ``source`` does not exist
            fs.errors.DirectoryExpected: If ``source`` is a directory and ``dest`` is not
            fs.errors.ResourceInvalid: If ``dest`` is neither a file nor a directory,
                or lies inside ``source``
            CopyFailed: If a storage operation fails along the way
        """
        if not self.is_exists(source):
            raise fs.errors.ResourceNotFound(str(source.path))
        if self.is_dir(source) and not self.is_dir(dest):
            raise fs.errors.DirectoryExpected(str(dest.path))
        if not (self.is_dir(dest) or self.is_file(dest)):
            raise fs.errors.ResourceInvalid(str(dest.path), msg="copy destination '{path}' must be a file or a directory")
        if self.is_dir(source) and dest.path.is_within(source.path):
            raise fs.errors.ResourceInvalid(str(dest.path), msg="cannot copy a directory into itself ('{path}')")

        log.debug("copy %s -> %s", source, dest)
        try:
            if self.is_dir(dest):
                self._copy_into(source, dest)
            else:
                parent = self.dir_up(dest)
                if not self.is_exists(parent):
                    self.mk_dir(parent, self.default_parent_mode)
                self._copy_file(source, dest)
        except CopyFailed:
            raise
        except fs.errors.FSError as exc:
            raise CopyFailed(str(source.path), str(dest.path), exc=exc) from exc

    def _copy_into(self, source, dest):
        if not self.is_exists(dest):
            self.mk_dir(dest, self.default_dir_mode)
        if isinstance(source, Directory):
            for name in self.scan_dir(source):
                child = self.mk_from_path(source.path.child(name))
                if isinstance(child, Directory):
                    self.copy(child, Directory(dest.path.child(name), self))
                else:
                    self.copy(child, dest)
        elif isinstance(source, Link):
            self._copy_link(source, Link(dest.path.child(source.filename), self))
        else:
            self._copy_file(source, File(dest.path.child(source.filename), self))

    def _copy_file(self, source, target):
        self.put_contents(target, self.get_contents(source))

    def _copy_link(self, source, target):
        self.mk_link(target.with_target(source.target))

    def move(self, source, dest) -> Node:
        """
        Move a node by copying it and deleting the source

        When the copy fails and ``dest`` did not exist before, whatever the
        copy created at ``dest`` is removed again.

        Returns:
            Node: The node at its new location

        Raises:
            MoveFailed: If the copy fails
        """
        existed = self.is_exists(dest)
        try:
            self.copy(source, dest)
        except fs.errors.FSError as exc:
            if not existed:
                self._discard(dest)
            raise MoveFailed(str(source.path), str(dest.path), exc=exc) from exc

        if isinstance(source, Directory):
            self.rm_dir(source)
        else:
            self.unlink(source)
        log.debug("moved %s -> %s", source, dest)

        if isinstance(dest, Directory) and not isinstance(source, Directory):
            return source.rebind(dest.path.child(source.filename), self)
        return source.rebind(dest.path, self)

    def _discard(self, node):
        try:
            if not self.is_exists(node):
                return
            if isinstance(node, Directory):
                self.rm_dir(node)
            else:
                self.unlink(node)
        except fs.errors.FSError:
            log.exception("could not clean up %s after a failed move", node)

    # names

    def dir_up(self, node) -> Directory:
        """The directory containing ``node``, no storage access"""
        return Directory(node.path.normalize().parent, self)

    def get_filename(self, node) -> str:
        return node.path.filename

    def get_basename(self, node) -> str:
        return node.path.basename

    def get_extension(self, node) -> str:
        return node.path.extension
