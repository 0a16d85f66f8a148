import fcntl
import grp
import logging
import os
import pwd
import shutil
import stat
import time as _time

import fs.errors
import fs.permissions

from fs_backend import BaseBackend
from fs_node import LOCK_UN, SORT_NONE, Directory, File, Link, NodeKind

log = logging.getLogger("nodefs.local")


class LocalBackend(BaseBackend):
    """
    The backend for the local filesystem

    Every operation is a thin call into ``os``/``shutil``. Relative paths
    are resolved by the operating system against the process working
    directory. ``OSError``s are reported as ``fs.errors.OperationFailed``
    carrying the system's error text.
    """

    separator = os.sep

    def __init__(self):
        self._locks = {}

    def _validate(self, node):
        real = self.real_path(node)
        if not os.path.lexists(real):
            raise fs.errors.ResourceNotFound(real)
        return real

    def _failed(self, node, exc, action):
        return fs.errors.OperationFailed(
            path=self.real_path(node), exc=exc, msg=f"{action} '{{path}}' failed: {{details}}"
        )

    def _stat(self, node):
        real = self._validate(node)
        try:
            return os.lstat(real) if isinstance(node, Link) else os.stat(real)
        except OSError as exc:
            raise self._failed(node, exc, "stat") from exc

    # navigation

    def get_cwd(self) -> Directory:
        return Directory(os.getcwd(), self)

    def ch_dir(self, directory) -> None:
        real = self._validate(directory)
        try:
            os.chdir(real)
        except OSError as exc:
            raise self._failed(directory, exc, "chdir to") from exc

    def scan_dir(self, directory=None, sort=SORT_NONE):
        if directory is None:
            directory = self.get_cwd()
        real = self._validate(directory)
        try:
            names = os.listdir(real)
        except OSError as exc:
            raise self._failed(directory, exc, "listing") from exc
        return self._sort_names(names, sort)

    # node types

    def classify(self, path) -> NodeKind:
        try:
            mode = os.lstat(self.real_path(path)).st_mode
        except (FileNotFoundError, NotADirectoryError):
            return NodeKind.NOT_FOUND
        except OSError as exc:
            raise fs.errors.OperationFailed(path=self.real_path(path), exc=exc) from exc
        if stat.S_ISLNK(mode):
            return NodeKind.LINK
        if stat.S_ISDIR(mode):
            return NodeKind.DIRECTORY
        return NodeKind.FILE

    def is_exists(self, node) -> bool:
        return self.classify(node.path) is node.kind

    # metadata

    def get_owner(self, node):
        uid = self._stat(node).st_uid
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return str(uid)

    def get_group(self, node):
        gid = self._stat(node).st_gid
        try:
            return grp.getgrgid(gid).gr_name
        except KeyError:
            return str(gid)

    def get_perms(self, node) -> fs.permissions.Permissions:
        return fs.permissions.Permissions(mode=stat.S_IMODE(self._stat(node).st_mode))

    def chmod(self, node, mode) -> None:
        real = self._validate(node)
        if isinstance(mode, fs.permissions.Permissions):
            mode = mode.mode
        try:
            os.chmod(real, mode)
        except OSError as exc:
            raise self._failed(node, exc, "chmod") from exc

    def _chown(self, node, uid, gid, action):
        real = self._validate(node)
        try:
            os.chown(real, uid, gid)
        except OSError as exc:
            raise self._failed(node, exc, action) from exc

    def chown(self, node, user) -> None:
        if isinstance(user, str):
            try:
                user = pwd.getpwnam(user).pw_uid
            except KeyError:
                raise ValueError(f"unknown user {user!r}") from None
        self._chown(node, user, -1, "chown")

    def chgrp(self, node, group) -> None:
        if isinstance(group, str):
            try:
                group = grp.getgrnam(group).gr_gid
            except KeyError:
                raise ValueError(f"unknown group {group!r}") from None
        self._chown(node, -1, group, "chgrp")

    def get_atime(self, node) -> float:
        return self._stat(node).st_atime

    def get_ctime(self, node) -> float:
        return self._stat(node).st_ctime

    def get_mtime(self, node) -> float:
        return self._stat(node).st_mtime

    def get_size(self, node) -> int:
        return self._stat(node).st_size

    def ch_atime(self, node, time=None) -> None:
        info = self._stat(node)
        self._utime(node, time, info.st_mtime)

    def ch_mtime(self, node, time=None) -> None:
        info = self._stat(node)
        self._utime(node, info.st_atime, time)

    def _utime(self, node, atime, mtime):
        now = _time.time()
        try:
            os.utime(self.real_path(node), (now if atime is None else atime, now if mtime is None else mtime))
        except OSError as exc:
            raise self._failed(node, exc, "touching") from exc

    def is_readable(self, node) -> bool:
        return os.access(self.real_path(node), os.R_OK)

    def is_writable(self, node) -> bool:
        return os.access(self.real_path(node), os.W_OK)

    def get_free_space(self):
        return shutil.disk_usage(os.getcwd()).free

    def get_total_space(self):
        return shutil.disk_usage(os.getcwd()).total

    # contents

    def get_contents(self, file) -> bytes:
        real = self._validate(file)
        try:
            with open(real, "rb") as handle:
                return handle.read()
        except OSError as exc:
            raise self._failed(file, exc, "reading") from exc

    def put_contents(self, file, contents) -> None:
        parent = self.dir_up(file)
        if not self.is_exists(parent):
            self.mk_dir(parent)
        real = self.real_path(file)
        # a lock taken with flock() is held by its own handle and covers this write
        held = real in self._locks
        try:
            with os.fdopen(os.open(real, os.O_WRONLY | os.O_CREAT, 0o666), "wb") as handle:
                if not held:
                    fcntl.flock(handle, fcntl.LOCK_EX)
                handle.truncate(0)
                handle.write(contents)
                handle.flush()
                if not held:
                    fcntl.flock(handle, fcntl.LOCK_UN)
        except OSError as exc:
            raise self._failed(file, exc, "writing") from exc
        log.debug("wrote %d bytes to %s", len(contents), real)

    def flock(self, file, mode) -> bool:
        """
        Lock or unlock a file

        The locked file stays open until it is unlocked with LOCK_UN.
        """
        real = self._validate(file)
        try:
            if mode & LOCK_UN:
                handle = self._locks.pop(real, None)
                if handle is not None:
                    fcntl.flock(handle, fcntl.LOCK_UN)
                    handle.close()
                return True
            handle = self._locks.get(real)
            if handle is None:
                handle = self._locks[real] = open(real, "rb")
            fcntl.flock(handle, mode)
        except OSError as exc:
            raise self._failed(file, exc, "locking") from exc
        return True

    def _copy_file(self, source, target):
        parent = self.dir_up(target)
        if not self.is_exists(parent):
            self.mk_dir(parent)
        try:
            shutil.copyfile(self.real_path(source), self.real_path(target))
        except OSError as exc:
            raise self._failed(source, exc, "copying") from exc

    # tree

    def mk_dir(self, directory, mode=None) -> None:
        real = self.real_path(directory)
        if mode is None:
            mode = self.default_dir_mode
        elif isinstance(mode, fs.permissions.Permissions):
            mode = mode.mode
        try:
            os.makedirs(real, mode, exist_ok=True)
        except OSError as exc:
            raise self._failed(directory, exc, "creating directory") from exc

    def _remove_dir(self, directory) -> None:
        try:
            os.rmdir(self.real_path(directory))
        except OSError as exc:
            raise self._failed(directory, exc, "removing directory") from exc

    def rename(self, node, new_name):
        """
        Rename a node, a bare name stays in the node's directory

        An existing target is overwritten.
        """
        real = self._validate(node)
        target = self._rename_target(node, new_name)
        try:
            os.replace(real, str(target))
        except OSError as exc:
            raise self._failed(node, exc, "renaming") from exc
        return node.with_path(target)

    def unlink(self, node) -> None:
        if not isinstance(node, (File, Link)):
            raise fs.errors.FileExpected(self.real_path(node))
        real = self._validate(node)
        try:
            os.unlink(real)
        except OSError as exc:
            raise self._failed(node, exc, "unlinking") from exc

    # links

    def mk_link(self, link) -> None:
        target = link.target
        try:
            os.symlink(self.real_path(target), self.real_path(link))
        except OSError as exc:
            raise self._failed(link, exc, "linking") from exc

    def link_read(self, link):
        real = self._validate(link)
        try:
            target = self.make_path(os.readlink(real))
        except OSError as exc:
            raise self._failed(link, exc, "reading link") from exc
        if not target.is_absolute:
            target = link.path.normalize().parent.append(target).normalize()
        return self.mk_from_path(target)

    def get_stat(self, node) -> os.stat_result:
        return self._stat(node)
