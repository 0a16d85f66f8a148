import unittest

from path_uri import PathUri


class TestParse(unittest.TestCase):
    def test_absolute(self):
        path = PathUri.parse("/var/www/index.html")
        self.assertTrue(path.is_absolute)
        self.assertEqual(path.segments, ("var", "www", "index.html"))
        self.assertEqual(str(path), "/var/www/index.html")

    def test_relative(self):
        path = PathUri.parse("images//logo.png")
        self.assertFalse(path.is_absolute)
        self.assertEqual(path.segments, ("images", "logo.png"))

    def test_empty_and_root(self):
        self.assertEqual(str(PathUri.parse("")), ".")
        self.assertEqual(str(PathUri.parse("/")), "/")

    def test_backslash_separator(self):
        path = PathUri.parse("C:\\Users\\me/notes.txt", "\\")
        self.assertTrue(path.is_absolute)
        self.assertEqual(path.drive, "C:")
        self.assertEqual(path.segments, ("Users", "me", "notes.txt"))
        self.assertEqual(str(path), "C:\\Users\\me\\notes.txt")

    def test_equality_ignores_separator(self):
        self.assertEqual(PathUri.parse("a/b"), PathUri.parse("a\\b", "\\"))
        self.assertNotEqual(PathUri.parse("/a/b"), PathUri.parse("a/b"))

    def test_type_error(self):
        with self.assertRaises(TypeError):
            PathUri.parse(42)

    def test_dict_round_trip(self):
        path = PathUri.parse("/a/b c/d")
        data = path.to_dict()
        self.assertEqual(data["path"], ["a", "b c", "d"])
        self.assertTrue(data["absolute"])
        self.assertEqual(PathUri.from_dict(data), path)


class TestNormalize(unittest.TestCase):
    def test_resolves_dots(self):
        self.assertEqual(str(PathUri.parse("/a/./b/../c/").normalize()), "/a/c")

    def test_idempotent(self):
        for raw in ("/a/../../b/./c", "../../x/y/..", "a/b/../../..", "/", "", "./a//b/"):
            once = PathUri.parse(raw).normalize()
            self.assertEqual(once.normalize(), once, raw)
            self.assertEqual(str(once.normalize()), str(once), raw)

    def test_absolute_clamps_at_root(self):
        self.assertEqual(str(PathUri.parse("/../../etc/passwd").normalize()), "/etc/passwd")

    def test_relative_keeps_leading_parent(self):
        self.assertEqual(str(PathUri.parse("../../x").normalize()), "../../x")
        self.assertEqual(str(PathUri.parse("a/../..").normalize()), "..")

    def test_basepath_clamps(self):
        path = PathUri.parse("../../etc/passwd").with_basepath("/var/www").allow_override_basepath(False)
        self.assertEqual(str(path.normalize()), "/var/www/etc/passwd")
        self.assertEqual(str(path), "/var/www/etc/passwd")

    def test_basepath_override(self):
        path = PathUri.parse("../etc").with_basepath("/var/www").allow_override_basepath(True)
        self.assertEqual(str(path.normalize()), "/var/etc")

    def test_override_still_clamped_at_root(self):
        path = PathUri.parse("../../../../etc").with_basepath("/var/www").allow_override_basepath()
        self.assertEqual(str(path.normalize()), "/etc")


class TestCombine(unittest.TestCase):
    def setUp(self):
        self.root = PathUri.parse("/var/www")
        self.child = PathUri.parse("/var/www/images/logo.png")

    def test_append_and_prepend(self):
        self.assertEqual(str(self.root.append("images")), "/var/www/images")
        self.assertEqual(str(PathUri.parse("images").prepend(self.root)), "/var/www/images")
        self.assertEqual(str(PathUri.parse("images").prepend("/")), "/images")

    def test_builders_do_not_modify(self):
        self.root.append("x")
        self.root.with_basepath("/srv")
        self.assertEqual(str(self.root), "/var/www")

    def test_joint(self):
        self.assertEqual(str(self.child.joint(PathUri.parse("/var/log"))), "/var")
        self.assertEqual(str(self.child.joint(PathUri.parse("var/www"))), "/")
        self.assertEqual(self.child.joint(PathUri.parse("var/www"), strict=False).segments, ("var", "www"))

    def test_mask_round_trip(self):
        masked = self.child.mask(self.root)
        self.assertFalse(masked.is_absolute)
        self.assertEqual(str(masked), "images/logo.png")
        self.assertEqual(masked.prepend(self.root), self.child)

    def test_mask_of_non_prefix_keeps_remainder(self):
        self.assertEqual(str(PathUri.parse("/var/other/file").mask(self.root)), "other/file")

    def test_mask_of_itself_is_empty(self):
        self.assertEqual(str(self.root.mask(self.root)), ".")
        self.assertEqual(str(self.root.mask(self.root).prepend("/")), "/")

    def test_is_within(self):
        self.assertTrue(self.child.is_within(self.root))
        self.assertTrue(self.root.is_within(self.root))
        self.assertTrue(self.root.is_within("/"))
        self.assertFalse(PathUri.parse("/var/wwwdata").is_within(self.root))
        self.assertFalse(PathUri.parse("var/www/x").is_within(self.root))


class TestNames(unittest.TestCase):
    def test_parts(self):
        path = PathUri.parse("/backups/archive.tar.gz")
        self.assertEqual(path.filename, "archive.tar.gz")
        self.assertEqual(path.basename, "archive.tar")
        self.assertEqual(path.extension, "gz")
        self.assertEqual(str(path.parent), "/backups")

    def test_hidden_file(self):
        path = PathUri.parse("/home/me/.bashrc")
        self.assertEqual(path.basename, ".bashrc")
        self.assertEqual(path.extension, "")

    def test_root_parent(self):
        self.assertEqual(str(PathUri.parse("/").parent), "/")
        self.assertEqual(str(PathUri.parse("notes.txt").parent), ".")


if __name__ == "__main__":
    unittest.main()
