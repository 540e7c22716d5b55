import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from stcpp.diag import PP_INCLUDE_NOT_FOUND, PP_READ_ERROR, SourceError


@dataclass(frozen=True)
class SourceLocation:
    filename: str
    line: int


@dataclass(frozen=True)
class LogicalLine:
    text: str
    location: SourceLocation


def split_logical_lines(text: str) -> Iterator[tuple[int, int, str]]:
    chunks: list[str] = []
    length = len(text)
    line = 1
    first = 1
    quote: str | None = None
    index = 0
    while index < length:
        ch = text[index]
        next_ch = text[index + 1] if index + 1 < length else ""
        if ch == "\\" and next_ch == "\n":
            index += 2
            line += 1
            continue
        if ch == "\n":
            yield first, line, "".join(chunks)
            chunks = []
            quote = None
            index += 1
            line += 1
            first = line
            continue
        if quote is not None:
            chunks.append(ch)
            if ch == "\\" and next_ch:
                chunks.append(next_ch)
                index += 2
                continue
            if ch == quote:
                quote = None
            index += 1
            continue
        if ch in "\"'":
            quote = ch
            chunks.append(ch)
            index += 1
            continue
        if ch == "/" and next_ch == "/":
            while index < length and text[index] != "\n":
                if text.startswith("\\\n", index):
                    line += 1
                    index += 1
                index += 1
            chunks.append(" ")
            continue
        if ch == "/" and next_ch == "*":
            close = text.find("*/", index + 2)
            stop = length if close < 0 else close + 2
            line += text.count("\n", index, stop)
            chunks.append(" ")
            index = stop
            continue
        chunks.append(ch)
        index += 1
    if chunks:
        yield first, line, "".join(chunks)


class SourceStream:
    def __init__(self, filename: str, text: str, directory: Path | None = None) -> None:
        self.filename = filename
        self.directory = directory
        self.line = 0
        self._lines = split_logical_lines(text.replace("\r\n", "\n"))
        self._next_physical = 1
        self._line_delta = 0
        self.closed = False

    def read(self) -> LogicalLine | None:
        if self.closed:
            return None
        item = next(self._lines, None)
        if item is None:
            return None
        first, last, text = item
        self._next_physical = last + 1
        self.line = first + self._line_delta
        return LogicalLine(text, SourceLocation(self.filename, self.line))

    def set_line_number(self, line: int, filename: str | None = None) -> None:
        # Applies from the next logical line on.
        self._line_delta = line - self._next_physical
        if filename is not None:
            self.filename = filename

    def close(self) -> None:
        self.closed = True


class SourceStack:
    def __init__(self, include_dirs: tuple[str, ...] = (), *, use_cpath: bool = True) -> None:
        self._include_dirs = tuple(Path(path) for path in include_dirs)
        self._use_cpath = use_cpath
        self._streams: list[SourceStream] = []
        self._last_location = SourceLocation("<input>", 0)

    @property
    def depth(self) -> int:
        return len(self._streams)

    def current(self) -> SourceStream | None:
        return self._streams[-1] if self._streams else None

    def location(self) -> SourceLocation:
        return self._last_location

    def search_dirs(self) -> tuple[Path, ...]:
        dirs = list(self._include_dirs)
        if self._use_cpath:
            cpath = os.environ.get("CPATH", "")
            if cpath:
                dirs.extend(Path(entry) if entry else Path(".") for entry in cpath.split(os.pathsep))
        return tuple(dirs)

    def resolve(self, name: str, search_current_dir: bool) -> Path | None:
        if Path(name).is_absolute():
            path = Path(name)
            return path if path.is_file() else None
        roots: list[Path] = []
        if search_current_dir:
            current = self.current()
            if current is not None and current.directory is not None:
                roots.append(current.directory)
            else:
                roots.append(Path("."))
        roots.extend(self.search_dirs())
        for root in roots:
            candidate = root / name
            if candidate.is_file():
                return candidate
        return None

    def open(self, name: str, search_current_dir: bool) -> SourceStream:
        path = self.resolve(name, search_current_dir)
        if path is None:
            raise SourceError(f"Include not found: {name}", code=PP_INCLUDE_NOT_FOUND)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as error:
            raise SourceError(f"Unable to read {name}: {error}", code=PP_READ_ERROR) from error
        return self.push_text(text, str(path), directory=path.parent)

    def push_text(self, text: str, filename: str, *, directory: Path | None = None) -> SourceStream:
        stream = SourceStream(filename, text, directory)
        self._streams.append(stream)
        return stream

    def read_logical_line(self) -> LogicalLine | None:
        while self._streams:
            stream = self._streams[-1]
            line = stream.read()
            if line is not None:
                self._last_location = line.location
                return line
            self.release(stream)
        return None

    def set_line_number(self, line: int, filename: str | None = None) -> None:
        stream = self.current()
        if stream is None:
            return
        stream.set_line_number(line, filename)

    def release(self, stream: SourceStream) -> None:
        stream.close()
        if stream in self._streams:
            self._streams.remove(stream)


def read_source(path: str, *, stdin_text: str | None = None) -> tuple[str, str]:
    if path == "-":
        return "<stdin>", "" if stdin_text is None else stdin_text
    resolved = Path(path)
    return str(resolved), resolved.read_text(encoding="utf-8")
