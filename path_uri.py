from typing import Iterable, Optional


class PathUri:
    """
    An immutable, separator-aware path value.

    A path is a sequence of segments plus an absolute flag, rendered with
    the separator of the backend it belongs to. Every builder method
    returns a new PathUri, the receiver is never modified.

    Attributes:
        segments (tuple): The path segments, without separators
        separator (str): The separator used to render the path
        is_absolute (bool): Whether the path starts at the filesystem root
        drive (str): Drive prefix such as ``C:``, only for ``\\`` separated paths
        basepath (PathUri): Optional base the path is resolved under by normalize

    Methods:
        parse: Create a PathUri from a string
        normalize: Resolve ``.``, ``..`` and the basepath
        append: Concatenate another path after this one
        prepend: Concatenate another path before this one
        joint: The common leading part of two paths
        mask: This path with the common leading part removed
    """

    __slots__ = ("_segments", "_separator", "_absolute", "_drive", "_basepath", "_override_basepath")

    def __init__(
        self,
        segments: Iterable[str] = (),
        separator: str = "/",
        absolute: bool = False,
        drive: Optional[str] = None,
        basepath: "Optional[PathUri]" = None,
        override_basepath: bool = False,
    ) -> None:
        if not separator:
            raise ValueError("separator must not be empty")
        self._segments = tuple(segments)
        self._separator = separator
        self._absolute = bool(absolute) or drive is not None
        self._drive = drive
        self._basepath = basepath
        self._override_basepath = override_basepath

    @classmethod
    def parse(cls, path, separator="/"):
        """
        Create a PathUri from a string

        ``/`` is always accepted as a separator on top of the configured one.

        Args:
            path (str): The path to parse, a PathUri is converted to ``separator``
            separator (str): The separator of the owning backend

        Returns:
            PathUri: The parsed path

        Raises:
            TypeError: If path is neither a string nor a PathUri
        """
        if isinstance(path, PathUri):
            return path.with_separator(separator)
        if not isinstance(path, str):
            raise TypeError(f"expected str or PathUri, got {type(path).__name__}")
        drive = None
        if separator == "\\" and len(path) >= 2 and path[1] == ":" and path[0].isalpha():
            drive, path = path[:2], path[2:]
        if separator != "/":
            path = path.replace("/", separator)
        absolute = path.startswith(separator)
        segments = [segment for segment in path.split(separator) if segment]
        return cls(segments, separator, absolute, drive)

    @classmethod
    def from_dict(cls, data):
        """Create a PathUri from the structure returned by to_dict"""
        return cls(
            data.get("path", ()),
            data.get("separator", "/"),
            data.get("absolute", False),
            data.get("drive"),
        )

    def to_dict(self):
        path = self._resolved()
        return {
            "path": list(path._segments),
            "separator": path._separator,
            "absolute": path._absolute,
            "drive": path._drive,
        }

    @property
    def segments(self):
        return self._segments

    @property
    def separator(self):
        return self._separator

    @property
    def is_absolute(self):
        return self._absolute

    @property
    def drive(self):
        return self._drive

    @property
    def basepath(self):
        return self._basepath

    @property
    def parent(self):
        """the directory containing this path"""
        return self._replace(segments=self._segments[:-1])

    @property
    def filename(self):
        """the last segment, extension included"""
        return self._segments[-1] if self._segments else ""

    @property
    def basename(self):
        """the last segment without its extension"""
        name = self.filename
        dot = name.rfind(".")
        return name[:dot] if dot > 0 else name

    @property
    def extension(self):
        name = self.filename
        dot = name.rfind(".")
        return name[dot + 1:] if dot > 0 else ""

    def _replace(self, **changes):
        values = {
            "segments": self._segments,
            "separator": self._separator,
            "absolute": self._absolute,
            "drive": self._drive,
            "basepath": self._basepath,
            "override_basepath": self._override_basepath,
        }
        values.update(changes)
        return PathUri(**values)

    def _coerce(self, other):
        if isinstance(other, PathUri):
            if other._separator != self._separator:
                return other.with_separator(self._separator)
            return other
        return PathUri.parse(other, self._separator)

    def _resolved(self):
        return self.normalize() if self._basepath is not None else self

    def with_separator(self, separator):
        if separator == self._separator:
            return self
        return self._replace(separator=separator)

    def with_basepath(self, basepath):
        """Return a copy resolved under ``basepath`` when normalized"""
        if basepath is not None:
            basepath = self._coerce(basepath)
        return self._replace(basepath=basepath)

    def allow_override_basepath(self, allow=True):
        """Return a copy whose ``..`` segments may (or may not) climb above the basepath"""
        return self._replace(override_basepath=bool(allow))

    def normalize(self):
        """
        Resolve ``.``, ``..``, empty segments and the basepath

        A ``..`` with nothing left to pop is dropped on absolute paths and
        under a basepath, and kept on bare relative paths. Under a basepath
        without override, the result never climbs above the basepath.

        Returns:
            PathUri: The normalized path, without basepath
        """
        if self._basepath is not None:
            base = self._basepath.normalize()
            if self._override_basepath:
                merged = PathUri(base._segments + self._segments, self._separator, base._absolute, base._drive)
                return merged.normalize()
            own = PathUri(self._segments, self._separator, absolute=True).normalize()
            return PathUri(base._segments + own._segments, self._separator, base._absolute, base._drive)

        stack = []
        for segment in self._segments:
            if segment in ("", "."):
                continue
            if segment == "..":
                if stack and stack[-1] != "..":
                    stack.pop()
                elif not self._absolute:
                    stack.append(segment)
                continue
            stack.append(segment)
        return PathUri(stack, self._separator, self._absolute, self._drive)

    def append(self, other):
        """Return this path followed by ``other``, keeping this path's absoluteness"""
        other = self._coerce(other)._resolved()
        return self._replace(segments=self._segments + other._segments)

    def prepend(self, other):
        """Return ``other`` followed by this path, taking ``other``'s absoluteness"""
        other = self._coerce(other)._resolved()
        return self._replace(
            segments=other._segments + self._segments,
            absolute=other._absolute,
            drive=other._drive,
        )

    def child(self, name):
        return self.append(name)

    def joint(self, other, strict=True):
        """
        The longest common leading run of segments

        Args:
            other (PathUri | str): The path to compare with
            strict (bool): Also require both paths to share absoluteness,
                the joint of an absolute and a relative path is then empty

        Returns:
            PathUri: The common part, absolute if this path is
        """
        mine = self._resolved()
        other = self._coerce(other)._resolved()
        common = []
        if not strict or mine._absolute == other._absolute:
            for left, right in zip(mine._segments, other._segments):
                if left != right:
                    break
                common.append(left)
        return PathUri(common, self._separator, mine._absolute, mine._drive)

    def mask(self, other, strict=True):
        """
        This path relative to ``other``

        Removes the joint of both paths from the front of this path. When
        ``other`` is not a prefix of this path, what remains after the common
        leading run is returned, nothing else is dropped.

        Returns:
            PathUri: A relative path
        """
        mine = self._resolved()
        common = mine.joint(other, strict)
        return PathUri(mine._segments[len(common._segments):], self._separator)

    def is_within(self, other):
        """whether ``other`` is this path or one of its ancestors"""
        mine = self.normalize()
        other = self._coerce(other).normalize()
        if mine._absolute != other._absolute:
            return False
        size = len(other._segments)
        return mine._segments[:size] == other._segments

    def to_string(self):
        path = self._resolved()
        body = path._separator.join(path._segments)
        if path._absolute:
            return (path._drive or "") + path._separator + body
        return body or "."

    def __str__(self) -> str:
        return self.to_string()

    def __fspath__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"<PathUri {self.to_string()!r}>"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PathUri):
            return NotImplemented
        mine, theirs = self._resolved(), other._resolved()
        return (
            mine._segments == theirs._segments
            and mine._absolute == theirs._absolute
            and (mine._drive or "").lower() == (theirs._drive or "").lower()
        )

    def __hash__(self) -> int:
        path = self._resolved()
        return hash((path._segments, path._absolute, (path._drive or "").lower()))
