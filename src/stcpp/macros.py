from dataclasses import dataclass
from datetime import datetime

from stcpp.diag import DefinitionError, ExpansionError, PreprocessorError
from stcpp.scanner import (
    is_ident_char,
    is_quote,
    scan_identifier,
    skip_literal,
    skip_number,
    skip_parenthesized,
    skip_spaces,
)
from stcpp.sources import SourceLocation

DEFAULT_RESTART_LIMIT = 100
DEFAULT_LINE_CAPACITY = 4096
BUILTIN_MACROS = frozenset({"__LINE__", "__FILE__", "__DATE__", "__TIME__"})


@dataclass(frozen=True)
class Macro:
    name: str
    replacement: str = ""
    parameters: tuple[str, ...] | None = None

    @property
    def is_function_like(self) -> bool:
        return self.parameters is not None

    def signature(self) -> str:
        if self.parameters is None:
            return self.name
        return f"{self.name}({','.join(self.parameters)})"


@dataclass(frozen=True)
class _Substitution:
    text: str
    end: int
    expanded: bool


def parse_define(body: str) -> Macro:
    start = skip_spaces(body, 0)
    end = scan_identifier(body, start)
    if end == start:
        raise DefinitionError("Missing macro name")
    name = body[start:end]
    parameters: tuple[str, ...] | None = None
    if end < len(body) and body[end] == "(":
        parameters, end = _parse_parameters(body, end + 1)
    elif end < len(body) and not body[end].isspace():
        raise DefinitionError(f"Invalid macro name: {body[start:].split()[0]}")
    replacement = body[skip_spaces(body, end) :].rstrip()
    return Macro(name, replacement, parameters)


def _parse_parameters(body: str, pos: int) -> tuple[tuple[str, ...], int]:
    params: list[str] = []
    pos = skip_spaces(body, pos)
    if pos < len(body) and body[pos] == ")":
        return (), pos + 1
    while True:
        pos = skip_spaces(body, pos)
        end = scan_identifier(body, pos)
        if end == pos:
            raise DefinitionError("Invalid macro parameter list")
        name = body[pos:end]
        if name in params:
            raise DefinitionError(f"Duplicate macro parameter: {name}")
        params.append(name)
        pos = skip_spaces(body, end)
        if pos >= len(body):
            raise DefinitionError("Missing ')' in macro parameter list")
        if body[pos] == ")":
            return tuple(params), pos + 1
        if body[pos] != ",":
            raise DefinitionError("Expected ',' in macro parameter list")
        pos += 1


class MacroTable:
    def __init__(
        self,
        *,
        restart_limit: int = DEFAULT_RESTART_LIMIT,
        line_capacity: int = DEFAULT_LINE_CAPACITY,
        now: datetime | None = None,
    ) -> None:
        self._macros: dict[str, Macro] = {}
        self._banned: set[str] = set()
        self.restart_limit = restart_limit
        self.line_capacity = line_capacity
        translation_start = datetime.now() if now is None else now
        self._date_literal = quote_string_literal(_format_date_macro(translation_start))
        self._time_literal = quote_string_literal(translation_start.strftime("%H:%M:%S"))

    def __contains__(self, name: object) -> bool:
        return name in self._macros

    def __len__(self) -> int:
        return len(self._macros)

    @property
    def macros(self) -> tuple[Macro, ...]:
        return tuple(self._macros.values())

    def define(self, body: str, location: SourceLocation | None = None) -> Macro | None:
        try:
            macro = parse_define(body)
        except DefinitionError as error:
            raise _located(DefinitionError, error.message, location) from error
        if macro.name in BUILTIN_MACROS:
            raise _located(
                DefinitionError, f"Cannot redefine built-in macro: {macro.name}", location
            )
        if macro.name in self._banned:
            return None
        self._macros[macro.name] = macro
        return macro

    def define_from_option(self, text: str) -> Macro | None:
        # -DNAME, -DNAME=VALUE, -DNAME(args)=VALUE
        name, sep, value = text.partition("=")
        if not sep:
            value = "1"
        try:
            return self.define(f"{name} {value}")
        except DefinitionError as error:
            raise DefinitionError(f"Invalid macro definition: {text}") from error

    def undef(self, name: str) -> bool:
        return self._macros.pop(name, None) is not None

    def ban(self, name: str) -> None:
        if not name or scan_identifier(name, 0) != len(name):
            raise DefinitionError(f"Invalid macro name in -U: {name}")
        self.undef(name)
        self._banned.add(name)

    def is_banned(self, name: str) -> bool:
        return name in self._banned

    def is_defined(self, name: str) -> bool:
        return name in self._macros or name in BUILTIN_MACROS

    def lookup(self, name: str) -> Macro | None:
        return self._macros.get(name)

    def listing(self) -> tuple[str, ...]:
        return tuple(f"{macro.signature()}={macro.replacement}" for macro in self._macros.values())

    def expand(self, text: str, location: SourceLocation, *, conditional: bool = False) -> str:
        buffer = text
        limit = max(self.line_capacity, len(text))
        pos = 0
        restarts = 0
        # End of the text produced by the substitutions being rescanned.
        span_end = 0
        while pos < len(buffer):
            ch = buffer[pos]
            if is_ident_char(ch, 0):
                if pos >= span_end:
                    restarts = 0
                end = scan_identifier(buffer, pos)
                result = self._substitute(buffer, pos, end, location, conditional)
                if pos < span_end:
                    span_end += len(result.text) - len(buffer)
                buffer = result.text
                if len(buffer) > limit:
                    raise _located(ExpansionError, "Output buffer capacity exceeded", location)
                if result.expanded and restarts < self.restart_limit:
                    restarts += 1
                    span_end = max(span_end, result.end)
                    continue
                pos = result.end
                continue
            if is_quote(ch):
                pos = skip_literal(buffer, pos)
            elif ch.isdigit():
                pos = skip_number(buffer, pos)
            else:
                pos += 1
        return buffer

    def _substitute(
        self,
        buffer: str,
        start: int,
        end: int,
        location: SourceLocation,
        conditional: bool,
    ) -> _Substitution:
        name = buffer[start:end]
        builtin = self._builtin_text(name, location)
        if builtin is not None:
            return _splice(buffer, start, end, builtin, expanded=True)
        macro = self._macros.get(name)
        if macro is None:
            return _unexpanded(buffer, start, end, conditional)
        if macro.parameters is None:
            if conditional and not macro.replacement.strip():
                return _splice(buffer, start, end, "0", expanded=True)
            body = macro.replacement
            if "##" in body:
                body = self._render_body(macro, {}, location)
            return _splice(buffer, start, end, body, expanded=True)
        if end >= len(buffer) or buffer[end] != "(":
            return _unexpanded(buffer, start, end, conditional)
        args, call_end = _collect_arguments(buffer, end, location)
        bound = _bind_arguments(macro, args, location)
        body = self._render_body(macro, bound, location)
        return _splice(buffer, start, call_end, body, expanded=True)

    def _builtin_text(self, name: str, location: SourceLocation) -> str | None:
        if name not in BUILTIN_MACROS:
            return None
        if name == "__LINE__":
            return str(location.line)
        if name == "__FILE__":
            return quote_string_literal(location.filename)
        if name == "__DATE__":
            return self._date_literal
        return self._time_literal

    def _render_body(
        self,
        macro: Macro,
        bound: dict[str, str],
        location: SourceLocation,
    ) -> str:
        body = macro.replacement
        # None marks a "##" still to be applied.
        pieces: list[str | None] = []
        index = 0
        while index < len(body):
            ch = body[index]
            if body.startswith("##", index):
                pieces.append(None)
                index += 2
                continue
            if ch == "#":
                target = skip_spaces(body, index + 1)
                target_end = scan_identifier(body, target)
                param = body[target:target_end]
                if param in bound:
                    pieces.append(self._stringify(bound[param], location))
                    index = target_end
                    continue
                pieces.append(ch)
                index += 1
                continue
            if is_quote(ch):
                end = skip_literal(body, index)
            elif ch.isdigit():
                end = skip_number(body, index)
            elif is_ident_char(ch, 0):
                end = scan_identifier(body, index)
                word = body[index:end]
                pieces.append(bound.get(word, word))
                index = end
                continue
            else:
                end = index + 1
            pieces.append(body[index:end])
            index = end
        return _apply_pastes(pieces)

    def _stringify(self, argument: str, location: SourceLocation) -> str:
        try:
            text = self.expand(argument, location)
        except ExpansionError:
            text = argument
        return quote_string_literal(text)


def _located(
    error_type: type[PreprocessorError],
    message: str,
    location: SourceLocation | None,
) -> PreprocessorError:
    if location is None:
        return error_type(message)
    return error_type(message, location.line, 1, filename=location.filename)


def _splice(buffer: str, start: int, stop: int, text: str, *, expanded: bool) -> _Substitution:
    return _Substitution(buffer[:start] + text + buffer[stop:], start + len(text), expanded)


def _unexpanded(buffer: str, start: int, end: int, conditional: bool) -> _Substitution:
    if not conditional:
        return _Substitution(buffer, end, False)
    stop = end
    if end < len(buffer) and buffer[end] == "(":
        closing = skip_parenthesized(buffer, end)
        if closing > 0:
            stop = closing
    return _splice(buffer, start, stop, "0", expanded=False)


def _collect_arguments(
    buffer: str,
    open_paren: int,
    location: SourceLocation,
) -> tuple[list[str], int]:
    args: list[str] = []
    index = open_paren + 1
    arg_start = index
    while index < len(buffer):
        ch = buffer[index]
        if is_quote(ch):
            index = skip_literal(buffer, index)
            continue
        if ch == "(":
            closing = skip_parenthesized(buffer, index)
            if closing < 0:
                break
            index = closing
            continue
        if ch in ",)":
            args.append(buffer[arg_start:index].strip())
            if ch == ")":
                return args, index + 1
            arg_start = index + 1
        index += 1
    raise _located(ExpansionError, "Unterminated macro argument list", location)


def _bind_arguments(
    macro: Macro,
    args: list[str],
    location: SourceLocation,
) -> dict[str, str]:
    assert macro.parameters is not None
    expected = len(macro.parameters)
    if expected == 0:
        if args != [""]:
            raise _located(
                ExpansionError, f"Macro {macro.name} takes no arguments", location
            )
        return {}
    if len(args) != expected:
        raise _located(
            ExpansionError,
            f"Macro {macro.name} expects {expected} argument(s), got {len(args)}",
            location,
        )
    return dict(zip(macro.parameters, args))


def _apply_pastes(pieces: list[str | None]) -> str:
    out = ""
    pending = False
    for piece in pieces:
        if piece is None:
            out = out.rstrip()
            pending = True
            continue
        if pending:
            if not piece.strip():
                continue
            out = paste_tokens(out, piece.lstrip())
            pending = False
            continue
        out += piece
    return out


def paste_tokens(left: str, right: str) -> str:
    if not left:
        return right
    if not right:
        return left
    split = _last_token_start(left)
    head, left_token = left[:split], left[split:]
    right_end = _first_token_end(right)
    right_token, tail = right[:right_end], right[right_end:]
    left_string = _is_string_token(left_token)
    right_string = _is_string_token(right_token)
    if left_string and right_string:
        merged = left_token[:-1] + right_token[1:]
    elif left_string:
        merged = left_token[:-1] + right_token + '"'
    elif right_string:
        merged = '"' + left_token + right_token[1:]
    else:
        merged = left_token + right_token
    return head + merged + tail


def _token_end(text: str, index: int) -> int:
    ch = text[index]
    if is_quote(ch):
        return skip_literal(text, index)
    if ch.isdigit():
        return skip_number(text, index)
    if is_ident_char(ch, 0):
        return scan_identifier(text, index)
    return index + 1


def _last_token_start(text: str) -> int:
    index = 0
    last = 0
    while index < len(text):
        if text[index].isspace():
            index += 1
            continue
        last = index
        index = _token_end(text, index)
    return last


def _first_token_end(text: str) -> int:
    return _token_end(text, 0)


def _is_string_token(token: str) -> bool:
    return len(token) >= 2 and token[0] == '"' and token[-1] == '"'


def quote_string_literal(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _format_date_macro(now: datetime) -> str:
    month = (
        "Jan",
        "Feb",
        "Mar",
        "Apr",
        "May",
        "Jun",
        "Jul",
        "Aug",
        "Sep",
        "Oct",
        "Nov",
        "Dec",
    )[now.month - 1]
    return f"{month} {now.day:2d} {now.year:04d}"
