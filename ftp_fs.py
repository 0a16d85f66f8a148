import calendar
import dataclasses
import ftplib
import io
import logging
import re
import time as _time
from datetime import datetime
from typing import Dict, Iterable

import fs.errors
import fs.permissions

from fs_backend import BaseBackend
from fs_node import SORT_NONE, Directory, File, Link, NodeKind
from path_uri import PathUri

log = logging.getLogger("nodefs.ftp")

LIST_FIELDS = ("rights", "number", "user", "group", "size", "month", "day", "time")
RECORD_KINDS = {"d": NodeKind.DIRECTORY, "l": NodeKind.LINK}


def parse_raw_list(lines: Iterable[str]) -> Dict[str, dict]:
    """
    Parse the lines of a unix style ``LIST`` reply

    Each line holds eight whitespace separated fields (rights, link count,
    user, group, size, month, day, time or year) followed by the entry
    name, which may itself contain spaces.

    Args:
        lines (Iterable[str]): The reply lines

    Returns:
        dict: name -> record with the eight fields plus ``name`` and ``type``
            (``directory`` when the rights start with ``d``, ``file`` otherwise)
    """
    entries = {}
    for line in lines:
        line = line.rstrip("\r\n").lstrip()
        if not line or line.startswith("total "):
            continue
        chunks = re.split(r"\s+", line, maxsplit=len(LIST_FIELDS))
        if len(chunks) <= len(LIST_FIELDS):
            log.debug("skipping listing line %r", line)
            continue
        record = dict(zip(LIST_FIELDS, chunks))
        name = chunks[-1]
        if record["rights"].startswith("l") and " -> " in name:
            name, record["target"] = name.split(" -> ", 1)
        record["name"] = name
        record["type"] = "directory" if record["rights"].startswith("d") else "file"
        entries[name] = record
    return entries


def parse_mdtm(reply: str) -> float:
    """Convert a ``213 YYYYMMDDHHMMSS[.sss]`` reply into a unix timestamp"""
    value = reply[3:].strip()
    stamp = datetime.strptime(value[:14], "%Y%m%d%H%M%S")
    fraction = float("0" + value[14:]) if value[14:15] == "." else 0.0
    return calendar.timegm(stamp.timetuple()) + fraction


@dataclasses.dataclass(frozen=True)
class FtpOptions:
    host: str
    port: int = 21
    username: str = "anonymous"
    password: str = ""
    use_tls: bool = False
    timeout: float = 30.0
    passive: bool = True


class FtpBackend(BaseBackend):
    """
    The backend for a remote FTP server

    The connection is opened on the first command and reused until the
    options change. Recursive operations address every entry by its full
    path; only the directory probe touches the server's working directory,
    and it always restores it.

    Attributes:
        options (FtpOptions): The connection options

    Methods:
        connection: The live ``ftplib.FTP`` connection
        update_options: Change connection options, the next command reconnects
        get_raw_data: The listing record of a node
    """

    separator = "/"
    default_dir_mode = None
    default_parent_mode = None

    def __init__(self, options: FtpOptions) -> None:
        self._options = options
        self._conn = None
        self._refresh = True

    @property
    def options(self) -> FtpOptions:
        return self._options

    def update_options(self, **changes) -> None:
        self._options = dataclasses.replace(self._options, **changes)
        self._refresh = True

    def connection(self) -> ftplib.FTP:
        """
        Get the connection, connecting and logging in when needed

        Raises:
            fs.errors.RemoteConnectionError: If the server can't be reached or refuses the login
        """
        if self._conn is not None and not self._refresh:
            return self._conn
        self.close()
        opts = self._options
        conn = ftplib.FTP_TLS() if opts.use_tls else ftplib.FTP()
        try:
            conn.connect(opts.host, opts.port, opts.timeout)
            conn.login(opts.username, opts.password)
            if opts.use_tls:
                conn.prot_p()
            conn.set_pasv(opts.passive)
        except ftplib.all_errors as exc:
            conn.close()
            raise fs.errors.RemoteConnectionError(
                exc=exc,
                msg=f"FTP connection failed to '{opts.host}' for user '{opts.username}': {{details}}",
            ) from exc
        log.info("connected to %s:%s as %s", opts.host, opts.port, opts.username)
        self._conn = conn
        self._refresh = False
        return conn

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.quit()
        except ftplib.all_errors:
            self._conn.close()
        self._conn = None
        log.debug("disconnected from %s", self._options.host)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _run(self, action, path, command):
        conn = self.connection()
        try:
            return command(conn)
        except (OSError, EOFError) as exc:
            self._refresh = True
            raise fs.errors.RemoteConnectionError(
                path=path, exc=exc, msg=f"connection lost while {action} '{{path}}': {{details}}"
            ) from exc
        except ftplib.Error as exc:
            raise fs.errors.OperationFailed(
                path=path, exc=exc, msg=f"{action} '{{path}}' failed, server said: {{details}}"
            ) from exc

    def _run_existing(self, action, path, command):
        """``_run`` for a command on an existing entry, where a 550 reply means it is missing"""

        def run(ftp):
            try:
                return command(ftp)
            except ftplib.error_perm as exc:
                if str(exc).startswith("550"):
                    raise fs.errors.ResourceNotFound(path, exc=exc) from exc
                raise

        return self._run(action, path, run)

    def _probe_dir(self, real) -> bool:
        def probe(ftp):
            previous = ftp.pwd()
            try:
                ftp.cwd(real)
            except ftplib.error_perm:
                return False
            finally:
                ftp.cwd(previous)
            return True

        return self._run("probing", real, probe)

    def _probe_size(self, real):
        def probe(ftp):
            ftp.voidcmd("TYPE I")
            try:
                return ftp.size(real)
            except ftplib.error_perm:
                return None

        return self._run("probing", real, probe)

    def _unsupported(self, node, action):
        return fs.errors.Unsupported(path=self.real_path(node), msg=f"{action} is not supported over FTP ('{{path}}')")

    # navigation

    def get_cwd(self) -> Directory:
        return Directory(self._run("getting working directory", None, lambda ftp: ftp.pwd()), self)

    def ch_dir(self, directory) -> None:
        real = self.real_path(directory)
        self._run("changing directory to", real, lambda ftp: ftp.cwd(real))

    def scan_dir(self, directory=None, sort=SORT_NONE):
        real = "." if directory is None else self.real_path(directory)

        def listing(ftp):
            try:
                return ftp.nlst(real)
            except ftplib.error_perm:
                # some servers answer 550 when listing an empty directory
                return None

        names = self._run("listing", real, listing)
        if names is None:
            if not self._probe_dir(real):
                raise fs.errors.ResourceNotFound(real)
            names = []
        return self._sort_names([PathUri.parse(name, self.separator).filename or name for name in names], sort)

    # node types

    def classify(self, path) -> NodeKind:
        """
        Tell what lives at ``path`` from its record in the parent listing

        A link is a link even when it resolves to a directory. The root, and
        entries the listing does not show, are probed with CWD and SIZE.
        """
        path = self.make_path(path)
        if path.normalize().segments:
            record = self._record(path)
            if record:
                return RECORD_KINDS.get(record["rights"][:1], NodeKind.FILE)
        real = str(path)
        if self._probe_dir(real):
            return NodeKind.DIRECTORY
        if self._probe_size(real) is not None:
            return NodeKind.FILE
        return NodeKind.NOT_FOUND

    def get_raw_data(self, node) -> dict:
        """
        Find the listing record of a node in its parent directory

        Returns:
            dict: The record as built by parse_raw_list, empty when there is none
        """
        return self._record(node.path)

    def _record(self, path):
        path = path.normalize()
        parent = str(path.parent)

        def listing(ftp):
            lines = []
            try:
                ftp.retrlines("LIST " + parent, lines.append)
            except ftplib.error_perm:
                return []
            return lines

        return parse_raw_list(self._run("listing", parent, listing)).get(path.filename, {})

    def _raw_data(self, node):
        record = self.get_raw_data(node)
        if not record:
            raise fs.errors.ResourceNotFound(self.real_path(node))
        return record

    def is_exists(self, node) -> bool:
        if not node.path.normalize().segments:
            return isinstance(node, Directory) and self._probe_dir(self.real_path(node))
        record = self.get_raw_data(node)
        if not record:
            return False
        if isinstance(node, Link):
            return record["rights"].startswith("l")
        if isinstance(node, Directory):
            return record["type"] == "directory"
        return record["type"] == "file"

    # metadata

    def get_owner(self, node):
        return self._raw_data(node)["user"]

    def get_group(self, node):
        return self._raw_data(node)["group"]

    def get_perms(self, node) -> fs.permissions.Permissions:
        return fs.permissions.Permissions.parse(self._raw_data(node)["rights"][1:10])

    def chmod(self, node, mode) -> None:
        if isinstance(mode, fs.permissions.Permissions):
            mode = mode.mode
        real = self.real_path(node)
        self._run("changing mode of", real, lambda ftp: ftp.voidcmd(f"SITE CHMOD {mode:o} {real}"))

    def chown(self, node, user) -> None:
        raise self._unsupported(node, "chown")

    def chgrp(self, node, group) -> None:
        raise self._unsupported(node, "chgrp")

    def get_atime(self, node) -> float:
        raise self._unsupported(node, "access time")

    def get_ctime(self, node) -> float:
        raise self._unsupported(node, "change time")

    def get_mtime(self, node) -> float:
        real = self.real_path(node)
        return parse_mdtm(self._run("getting modification time of", real, lambda ftp: ftp.sendcmd("MDTM " + real)))

    def get_size(self, node) -> int:
        real = self.real_path(node)

        def size(ftp):
            ftp.voidcmd("TYPE I")
            return ftp.size(real)

        return self._run("getting size of", real, size)

    def ch_atime(self, node, time=None) -> None:
        raise self._unsupported(node, "setting the access time")

    def ch_mtime(self, node, time=None) -> None:
        real = self.real_path(node)
        stamp = _time.strftime("%Y%m%d%H%M%S", _time.gmtime(_time.time() if time is None else time))
        self._run("setting modification time of", real, lambda ftp: ftp.sendcmd(f"MFMT {stamp} {real}"))

    def is_readable(self, node) -> bool:
        return self.is_exists(node)

    def is_writable(self, node) -> bool:
        return self.is_exists(node)

    # contents

    def get_contents(self, file) -> bytes:
        real = self.real_path(file)
        buffer = io.BytesIO()
        self._run_existing("downloading", real, lambda ftp: ftp.retrbinary("RETR " + real, buffer.write))
        return buffer.getvalue()

    def put_contents(self, file, contents) -> None:
        parent = self.dir_up(file)
        if not self.is_exists(parent):
            self.mk_dir(parent)
        real = self.real_path(file)
        self._allocate(real, len(contents))
        self._run("uploading", real, lambda ftp: ftp.storbinary("STOR " + real, io.BytesIO(contents)))
        log.debug("uploaded %d bytes to %s", len(contents), real)

    def _allocate(self, real, size):
        def allocate(ftp):
            try:
                ftp.sendcmd(f"ALLO {size}")
            except ftplib.error_perm as exc:
                if str(exc).startswith("502"):
                    log.debug("server does not implement ALLO")
                    return
                raise fs.errors.InsufficientStorage(
                    path=real, exc=exc, msg="unable to allocate space on server for '{path}', server said: {details}"
                ) from exc

        self._run("allocating space for", real, allocate)

    def flock(self, file, mode) -> bool:
        """FTP has no locking, the call always succeeds"""
        log.debug("flock(%s) ignored on FTP", file)
        return True

    # tree

    def mk_dir(self, directory, mode=None) -> None:
        """
        Create a directory level by level

        ``.``, ``/`` and the empty path already exist. Levels that already
        exist are left alone; each created level gets ``mode`` when given.
        """
        path = directory.path.normalize()
        if isinstance(mode, fs.permissions.Permissions):
            mode = mode.mode
        for depth in range(1, len(path.segments) + 1):
            level = str(PathUri(path.segments[:depth], self.separator, path.is_absolute))
            if self._probe_dir(level):
                continue
            self._run("creating directory", level, lambda ftp: ftp.mkd(level))
            log.debug("created directory %s", level)
            if mode is not None:
                self._run("changing mode of", level, lambda ftp: ftp.voidcmd(f"SITE CHMOD {mode:o} {level}"))

    def _remove_dir(self, directory) -> None:
        real = self.real_path(directory)
        self._run("deleting", real, lambda ftp: ftp.rmd(real))

    def rename(self, node, new_name):
        real = self.real_path(node)
        target = self._rename_target(node, new_name)
        self._run("renaming", real, lambda ftp: ftp.rename(real, str(target)))
        return node.with_path(target)

    def unlink(self, node) -> None:
        if not isinstance(node, (File, Link)):
            raise fs.errors.FileExpected(self.real_path(node))
        real = self.real_path(node)
        self._run_existing("deleting", real, lambda ftp: ftp.delete(real))

    # links

    def mk_link(self, link) -> None:
        raise self._unsupported(link, "creating links")

    def link_read(self, link):
        raise self._unsupported(link, "reading links")

    def _copy_link(self, source, target):
        # links can't be created over FTP, the entry behind the link is copied instead
        if self._probe_dir(self.real_path(source)):
            self._copy_into(Directory(source.path, self), Directory(target.path, self))
        else:
            self._copy_file(File(source.path, self), File(target.path, self))
