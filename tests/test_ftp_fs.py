import os
import tempfile
import unittest

import fs.errors

from fs_node import SORT_ASCENDING, Directory, File, Link, NodeKind
from ftp_fs import FtpBackend, FtpOptions

from ftpd import PASSWORD, USERNAME, FtpServerThread


class FtpTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = os.path.realpath(self._tmp.name)

        self.server = FtpServerThread(self.root)
        self.server.start()
        self.addCleanup(self.server.stop)

        self.backend = FtpBackend(self.options())
        self.addCleanup(self.backend.close)

    def options(self, **changes):
        values = dict(host=self.server.host, port=self.server.port, username=USERNAME, password=PASSWORD, timeout=10)
        values.update(changes)
        return FtpOptions(**values)

    def local(self, *parts):
        return os.path.join(self.root, *parts)

    def write_local(self, contents, *parts):
        os.makedirs(os.path.dirname(self.local(*parts)), exist_ok=True)
        with open(self.local(*parts), "wb") as handle:
            handle.write(contents)

    def read_local(self, *parts):
        with open(self.local(*parts), "rb") as handle:
            return handle.read()


class TestConnection(FtpTestCase):
    def test_lazy_connection(self):
        self.assertIsNone(self.backend._conn)
        self.assertEqual(str(self.backend.get_cwd().path), "/")
        self.assertIsNotNone(self.backend._conn)

    def test_update_options_reconnects(self):
        first = self.backend.connection()
        self.assertIs(self.backend.connection(), first)
        self.backend.update_options(timeout=5)
        self.assertEqual(self.backend.options.timeout, 5)
        self.assertIsNot(self.backend.connection(), first)

    def test_bad_login(self):
        backend = FtpBackend(self.options(password="wrong"))
        with self.assertRaises(fs.errors.RemoteConnectionError) as ctx:
            backend.get_cwd()
        self.assertIn(USERNAME, str(ctx.exception))

    def test_unreachable(self):
        backend = FtpBackend(self.options(port=1, timeout=2))
        with self.assertRaises(fs.errors.RemoteConnectionError):
            backend.get_cwd()

    def test_context_manager(self):
        with FtpBackend(self.options()) as backend:
            backend.get_cwd()
        self.assertIsNone(backend._conn)

    def test_dropped_connection_reconnects(self):
        os.mkdir(self.local("dir"))
        first = self.backend.connection()
        first.sock.close()
        with self.assertRaises(fs.errors.RemoteConnectionError):
            Directory("/dir", self.backend).scan_dir()
        self.assertEqual(Directory("/dir", self.backend).scan_dir(), [])
        self.assertIsNot(self.backend.connection(), first)


class TestTypes(FtpTestCase):
    def test_classify(self):
        self.write_local(b"data", "docs", "a.txt")
        self.assertIs(self.backend.classify("/docs"), NodeKind.DIRECTORY)
        self.assertIs(self.backend.classify("/docs/a.txt"), NodeKind.FILE)
        self.assertIs(self.backend.classify("/missing"), NodeKind.NOT_FOUND)
        self.assertIsInstance(self.backend.mk_from_path("/docs/a.txt"), File)
        self.assertFalse(self.backend.is_link("/docs/a.txt"))

    def test_probes_keep_working_directory(self):
        os.mkdir(self.local("docs"))
        self.backend.ch_dir(Directory("/docs", self.backend))
        self.backend.classify("/")
        self.backend.is_dir("/missing")
        self.assertEqual(str(self.backend.get_cwd().path), "/docs")

    def test_is_exists(self):
        self.write_local(b"data", "docs", "a.txt")
        self.assertTrue(Directory("/", self.backend).is_exists())
        self.assertTrue(Directory("/docs", self.backend).is_exists())
        self.assertTrue(File("/docs/a.txt", self.backend).is_exists())
        self.assertFalse(Directory("/docs/a.txt", self.backend).is_exists())
        self.assertFalse(File("/docs/b.txt", self.backend).is_exists())
        self.assertFalse(File("/nowhere/b.txt", self.backend).is_exists())

    def test_raw_data(self):
        self.write_local(b"12345", "docs", "a b.txt")
        record = self.backend.get_raw_data(File("/docs/a b.txt", self.backend))
        self.assertEqual(record["name"], "a b.txt")
        self.assertEqual(record["type"], "file")
        self.assertEqual(record["size"], "5")
        self.assertEqual(self.backend.get_raw_data(File("/docs/missing", self.backend)), {})


class TestContents(FtpTestCase):
    def test_put_creates_parents(self):
        File("/a/b/notes.txt", self.backend).put_contents(b"hello")
        self.assertEqual(self.read_local("a", "b", "notes.txt"), b"hello")

    def test_get(self):
        self.write_local(b"\x00binary\xff", "bin.dat")
        self.assertEqual(File("/bin.dat", self.backend).get_contents(), b"\x00binary\xff")

    def test_missing_file(self):
        with self.assertRaises(fs.errors.ResourceNotFound) as ctx:
            File("/missing.txt", self.backend).get_contents()
        self.assertIn("550", str(ctx.exception.exc))
        with self.assertRaises(fs.errors.ResourceNotFound):
            File("/missing.txt", self.backend).unlink()

    def test_size_and_mtime(self):
        self.write_local(b"x" * 42, "a.txt")
        file = File("/a.txt", self.backend)
        self.assertEqual(file.get_size(), 42)
        self.assertAlmostEqual(file.get_mtime(), os.path.getmtime(self.local("a.txt")), delta=1)

    def test_ch_mtime(self):
        file = File("/a.txt", self.backend).put_contents(b"a")
        file.ch_mtime(1000000000)
        self.assertEqual(file.get_mtime(), 1000000000)
        self.assertEqual(int(os.path.getmtime(self.local("a.txt"))), 1000000000)

    def test_flock_is_a_no_op(self):
        file = File("/a.txt", self.backend).put_contents(b"a")
        self.assertTrue(file.lock())
        self.assertTrue(file.unlock())


class TestMetadata(FtpTestCase):
    def test_perms(self):
        file = File("/a.txt", self.backend).put_contents(b"a")
        file.chmod(0o640)
        self.assertEqual(file.get_perms().mode, 0o640)
        self.assertEqual(os.stat(self.local("a.txt")).st_mode & 0o777, 0o640)

    def test_owner(self):
        file = File("/a.txt", self.backend).put_contents(b"a")
        self.assertTrue(file.get_owner())
        self.assertTrue(file.get_group())

    def test_unsupported(self):
        file = File("/a.txt", self.backend).put_contents(b"a")
        for call in (file.get_atime, file.get_ctime, lambda: file.chown("root"), lambda: file.ch_atime(0)):
            with self.assertRaises(fs.errors.Unsupported):
                call()
        with self.assertRaises(fs.errors.Unsupported):
            Link("/l", self.backend, target=file).mk_link()

    def test_space_unknown(self):
        self.assertIsNone(self.backend.get_free_space())
        self.assertIsNone(self.backend.get_total_space())


class TestTree(FtpTestCase):
    def test_mk_dir_recursive_and_idempotent(self):
        Directory("/a/b/c", self.backend).mk_dir()
        Directory("/a/b/c", self.backend).mk_dir()
        Directory("/", self.backend).mk_dir()
        self.assertTrue(os.path.isdir(self.local("a", "b", "c")))
        self.assertEqual(str(self.backend.get_cwd().path), "/")

    def test_mk_dir_with_mode(self):
        Directory("/private", self.backend).mk_dir(0o700)
        self.assertEqual(os.stat(self.local("private")).st_mode & 0o777, 0o700)

    def test_scan_dir(self):
        for name in ("b.txt", "a b.txt", "c"):
            self.write_local(b"", "dir", name)
        self.assertEqual(Directory("/dir", self.backend).scan_dir(SORT_ASCENDING), ["a b.txt", "b.txt", "c"])

    def test_scan_empty_and_missing(self):
        os.mkdir(self.local("empty"))
        self.assertEqual(Directory("/empty", self.backend).scan_dir(), [])
        with self.assertRaises(fs.errors.ResourceNotFound):
            Directory("/missing", self.backend).scan_dir()

    def test_rm_dir_recursive(self):
        self.write_local(b"a", "top", "a.txt")
        self.write_local(b"b", "top", "sub", "b c.txt")
        os.mkdir(self.local("top", "sub", "empty"))
        Directory("/top", self.backend).rm_dir()
        self.assertFalse(os.path.exists(self.local("top")))

    def test_directory_link_is_a_link(self):
        self.write_local(b"f", "top", "real", "f.txt")
        os.symlink(self.local("top", "real"), self.local("top", "alias"))
        self.assertIs(self.backend.classify("/top/alias"), NodeKind.LINK)
        self.assertIs(self.backend.classify("/top/real"), NodeKind.DIRECTORY)
        self.assertIsInstance(self.backend.mk_from_path("/top/alias"), Link)
        self.assertTrue(Link("/top/alias", self.backend).is_exists())
        self.assertFalse(Directory("/top/alias", self.backend).is_exists())

    def test_rm_dir_with_directory_link(self):
        self.write_local(b"f", "top", "real", "f.txt")
        self.write_local(b"k", "kept", "k.txt")
        os.symlink(self.local("top", "real"), self.local("top", "alias"))
        os.symlink(self.local("kept"), self.local("top", "outer"))
        Directory("/top", self.backend).rm_dir()
        self.assertFalse(os.path.lexists(self.local("top")))
        self.assertEqual(self.read_local("kept", "k.txt"), b"k")

    def test_copy_with_directory_link(self):
        self.write_local(b"f", "top", "real", "f.txt")
        os.symlink(self.local("top", "real"), self.local("top", "alias"))
        Directory("/top", self.backend).copy(Directory("/backup", self.backend))
        self.assertEqual(self.read_local("backup", "real", "f.txt"), b"f")
        self.assertEqual(self.read_local("backup", "alias", "f.txt"), b"f")
        self.assertFalse(os.path.islink(self.local("backup", "alias")))

    def test_unlink(self):
        self.write_local(b"a", "a.txt")
        File("/a.txt", self.backend).unlink()
        self.assertFalse(os.path.exists(self.local("a.txt")))

    def test_rename(self):
        self.write_local(b"a", "dir", "a.txt")
        renamed = File("/dir/a.txt", self.backend).rename("b.txt")
        self.assertEqual(str(renamed.path), "/dir/b.txt")
        self.assertEqual(self.read_local("dir", "b.txt"), b"a")

    def test_copy_directory_merge(self):
        self.write_local(b"1", "a", "one.txt")
        self.write_local(b"2", "a", "two.txt")
        self.write_local(b"3", "a", "sub", "three.txt")
        self.write_local(b"k", "b", "keep.txt")
        Directory("/a", self.backend).copy(Directory("/b", self.backend))
        self.assertEqual(sorted(os.listdir(self.local("b"))), ["keep.txt", "one.txt", "sub", "two.txt"])
        self.assertEqual(self.read_local("b", "sub", "three.txt"), b"3")

    def test_copy_file_onto_file(self):
        self.write_local(b"1", "one.txt")
        File("/one.txt", self.backend).copy(File("/x/y/copy.txt", self.backend))
        self.assertEqual(self.read_local("x", "y", "copy.txt"), b"1")

    def test_move(self):
        self.write_local(b"1", "a", "one.txt")
        moved = Directory("/a", self.backend).move(Directory("/b", self.backend))
        self.assertEqual(str(moved.path), "/b")
        self.assertFalse(os.path.exists(self.local("a")))
        self.assertEqual(self.read_local("b", "one.txt"), b"1")


if __name__ == "__main__":
    unittest.main()
