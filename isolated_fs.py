import logging

import fs.errors

from fs_backend import BaseBackend
from fs_errors import RootEscape
from fs_node import SORT_NONE, Directory, Link, Node, NodeKind
from path_uri import PathUri

log = logging.getLogger("nodefs.isolated")


def _forward(name):
    def method(self, node, *args, **kwargs):
        return getattr(self.backend, name)(self.to_real(node), *args, **kwargs)

    method.__name__ = name
    method.__doc__ = f"``{name}`` of the wrapped backend, called with the real node"
    return method


class IsolatedBackend(BaseBackend):
    """
    Confine another backend below a root directory

    Callers see virtual absolute paths starting at ``/``, which map to
    paths below the root on the wrapped backend. ``..`` can never climb
    above the root: it is clamped while resolving, not reported.

    Attributes:
        backend (BaseBackend): The wrapped backend
        root_path (PathUri): The real root, ``/`` when never set

    Methods:
        ch_root_path: Set the root
        to_real: Translate a virtual node into a node of the wrapped backend
        to_virtual: Translate a node of the wrapped backend into a virtual node
    """

    def __init__(self, backend, root=None) -> None:
        self.backend = backend
        self._root = None
        self._last_cdir = None
        if root is not None:
            self.ch_root_path(root)

    @property
    def separator(self):
        return self.backend.separator

    @property
    def default_dir_mode(self):
        return self.backend.default_dir_mode

    @property
    def default_parent_mode(self):
        return self.backend.default_parent_mode

    @property
    def root_path(self) -> PathUri:
        if self._root is None:
            self.ch_root_path(self.separator)
        return self._root

    def ch_root_path(self, root) -> None:
        """
        Set the root directory

        When the wrapped backend's working directory is outside the new
        root, it is moved to the root.

        Args:
            root (str | PathUri): An absolute path to an existing directory

        Raises:
            ValueError: If ``root`` is relative
            fs.errors.DirectoryExpected: If ``root`` is not an existing directory
        """
        root = self.backend.make_path(root).normalize()
        if not root.is_absolute:
            raise ValueError(f"root path must be absolute, got '{root}'")
        if not self.backend.is_dir(str(root)):
            raise fs.errors.DirectoryExpected(str(root))
        self._root = root
        log.info("isolating %s below %s", type(self.backend).__name__, root)

        cwd = self.backend.get_cwd().path.normalize()
        if cwd.is_within(root):
            self._last_cdir = cwd
        else:
            self.ch_dir(Directory(self.separator, self))

    # translation

    def _real(self, path) -> PathUri:
        path = self.make_path(path)
        if not path.is_absolute:
            path = self.get_cwd().path.append(path)
        return path.normalize().with_basepath(self.root_path).allow_override_basepath(False).normalize()

    def _virtual(self, path) -> PathUri:
        path = self.backend.make_path(path).normalize()
        root = self.root_path
        if not path.is_within(root):
            raise RootEscape(str(path), str(root))
        return path.mask(root).prepend(PathUri.parse(self.separator, self.separator))

    def real_path(self, target) -> str:
        if isinstance(target, Node):
            target = target.path
        return str(self._real(target))

    def to_real(self, node) -> Node:
        real = node.rebind(self._real(node.path), self.backend)
        if isinstance(node, Link) and node.known_target is not None:
            real = real.with_target(self.to_real(node.known_target))
        return real

    def to_virtual(self, node) -> Node:
        virtual = node.rebind(self._virtual(node.path), self)
        if isinstance(node, Link) and node.known_target is not None:
            virtual = virtual.with_target(self.to_virtual(node.known_target))
        return virtual

    # navigation

    def get_cwd(self) -> Directory:
        """
        The virtual working directory

        When something else moved the wrapped backend's working directory
        since the last ``ch_dir``, it is moved back first.
        """
        return self._get_cwd(restore=True)

    def _get_cwd(self, restore):
        real = self.backend.get_cwd().path.normalize()
        if self._last_cdir is not None and real != self._last_cdir:
            if not restore:
                raise fs.errors.OperationFailed(
                    path=str(real), msg="working directory stuck at '{path}' outside of the isolated tree"
                )
            log.warning("working directory drifted to %s, restoring %s", real, self._last_cdir)
            self.backend.ch_dir(Directory(self._last_cdir, self.backend))
            return self._get_cwd(restore=False)
        return Directory(self._virtual(real), self)

    def ch_dir(self, directory) -> None:
        real = self.to_real(directory)
        self.backend.ch_dir(real)
        self._last_cdir = real.path.normalize()

    def scan_dir(self, directory=None, sort=SORT_NONE):
        if directory is None:
            directory = self.get_cwd()
        return self.backend.scan_dir(self.to_real(directory), sort)

    # node types

    def classify(self, path) -> NodeKind:
        return self.backend.classify(self._real(path))

    def mk_from_path(self, path) -> Node:
        return self.to_virtual(self.backend.mk_from_path(self._real(path)))

    def is_file(self, target) -> bool:
        if isinstance(target, Node):
            return super().is_file(target)
        return self.backend.is_file(str(self._real(target)))

    def is_dir(self, target) -> bool:
        if isinstance(target, Node):
            return super().is_dir(target)
        return self.backend.is_dir(str(self._real(target)))

    def is_link(self, target) -> bool:
        if isinstance(target, Node):
            return super().is_link(target)
        return self.backend.is_link(str(self._real(target)))

    is_exists = _forward("is_exists")

    # metadata

    get_owner = _forward("get_owner")
    get_group = _forward("get_group")
    get_perms = _forward("get_perms")
    chmod = _forward("chmod")
    chown = _forward("chown")
    chgrp = _forward("chgrp")
    get_atime = _forward("get_atime")
    get_ctime = _forward("get_ctime")
    get_mtime = _forward("get_mtime")
    get_size = _forward("get_size")
    ch_atime = _forward("ch_atime")
    ch_mtime = _forward("ch_mtime")
    is_readable = _forward("is_readable")
    is_writable = _forward("is_writable")

    def get_free_space(self):
        return self.backend.get_free_space()

    def get_total_space(self):
        return self.backend.get_total_space()

    # contents

    get_contents = _forward("get_contents")
    put_contents = _forward("put_contents")
    flock = _forward("flock")

    # tree

    mk_dir = _forward("mk_dir")
    rm_dir = _forward("rm_dir")
    _remove_dir = _forward("_remove_dir")
    unlink = _forward("unlink")
    mk_link = _forward("mk_link")

    def link_read(self, link) -> Node:
        return self.to_virtual(self.backend.link_read(self.to_real(link)))

    def copy(self, source, dest) -> None:
        self.backend.copy(self.to_real(source), self.to_real(dest))

    def move(self, source, dest) -> Node:
        return self.to_virtual(self.backend.move(self.to_real(source), self.to_real(dest)))

    def rename(self, node, new_name) -> Node:
        target = self._real(self._rename_target(node, new_name))
        return self.to_virtual(self.backend.rename(self.to_real(node), str(target)))
