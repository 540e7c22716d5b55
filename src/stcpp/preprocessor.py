import ast
import io
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO, cast

from stcpp.conditional import ConditionStack
from stcpp.diag import (
    PP_ERROR_DIRECTIVE,
    DefinitionError,
    Diagnostic,
    DirectiveError,
    ExpressionError,
    PreprocessorError,
    SourceError,
)
from stcpp.expr import evaluate_expression
from stcpp.macros import MacroTable, quote_string_literal
from stcpp.options import PreprocessOptions, normalize_options
from stcpp.scanner import scan_identifier
from stcpp.sources import LogicalLine, SourceLocation, SourceStack, read_source

_DIRECTIVE_RE = re.compile(r"^\s*#\s*(?P<name>[A-Za-z_]\w*)?(?P<body>.*)$", re.DOTALL)
_INCLUDE_RE = re.compile(r"^(?:\"(?P<quote>[^\"\n]+)\"|<(?P<angle>[^>\n]+)>)$")
_LINE_RE = re.compile(r'^(\d+)(?:\s+("(?:[^"\\\n]|\\.)*"))?\s*$')
_DEFINED_PAREN_RE = re.compile(r"\bdefined\s*\(\s*([A-Za-z_]\w*)\s*\)")
_DEFINED_BARE_RE = re.compile(r"\bdefined\s+([A-Za-z_]\w*)")
_DEFINED_WORD_RE = re.compile(r"\bdefined\b")

_CONDITIONAL_DIRECTIVES = frozenset({"if", "ifdef", "ifndef", "elif", "else", "endif"})
_PSEUDO_FILENAMES = frozenset({"<input>", "<stdin>"})
MAX_INCLUDE_DEPTH = 200


@dataclass(frozen=True)
class PreprocessResult:
    output: str
    macro_table: tuple[str, ...]
    warnings: tuple[Diagnostic, ...]


def parse_directive(line: str) -> tuple[str, str] | None:
    if not line.lstrip().startswith("#"):
        return None
    match = _DIRECTIVE_RE.match(line)
    if match is None:
        return None
    return match.group("name") or "", match.group("body")


class Preprocessor:
    def __init__(self, options: PreprocessOptions | None = None) -> None:
        self.options = normalize_options(options)
        self.macros = MacroTable(
            restart_limit=self.options.restart_limit,
            line_capacity=self.options.line_capacity,
        )
        self.conditions = ConditionStack()
        self.sources = SourceStack(self.options.include_dirs, use_cpath=self.options.use_cpath)
        self.warnings: list[Diagnostic] = []
        for define in self.options.defines:
            self.macros.define_from_option(define)
        for name in self.options.undefs:
            self.macros.ban(name)

    def push_source(self, text: str, filename: str) -> None:
        directory = None if filename in _PSEUDO_FILENAMES else Path(filename).resolve().parent
        self.sources.push_text(text, filename, directory=directory)

    def run(self, out: TextIO) -> int:
        written = 0
        while True:
            line = self.sources.read_logical_line()
            if line is None:
                break
            emitted = self.process_line(line)
            if emitted is not None:
                out.write(emitted + "\n")
                written += 1
        try:
            self.conditions.require_closed()
        except DirectiveError as error:
            raise _relocate(error, self.sources.location()) from error
        return written

    def process_line(self, line: LogicalLine) -> str | None:
        parsed = parse_directive(line.text)
        if parsed is None:
            if not self.conditions.active:
                return None
            return self.macros.expand(line.text, line.location)
        name, body = parsed
        try:
            return self._dispatch(name, body, line)
        except PreprocessorError as error:
            if error.line is None:
                raise _relocate(error, line.location) from error
            raise

    def _dispatch(self, name: str, body: str, line: LogicalLine) -> str | None:
        location = line.location
        if name in _CONDITIONAL_DIRECTIVES:
            self._handle_conditional(name, body, location)
            return None
        if not self.conditions.active:
            return None
        if name == "define":
            self._handle_define(body, location)
        elif name == "undef":
            self.macros.undef(self._require_macro_name(body))
        elif name == "include":
            self._handle_include(body, location)
        elif name == "line":
            return self._handle_line(body, location)
        elif name == "error":
            message = body.strip() or "#error"
            self._report(
                DirectiveError(
                    message,
                    location.line,
                    1,
                    filename=location.filename,
                    code=PP_ERROR_DIRECTIVE,
                )
            )
        elif name == "pragma":
            return line.text.strip()
        return None

    def _handle_conditional(self, name: str, body: str, location: SourceLocation) -> None:
        if name in {"if", "ifdef", "ifndef"}:
            if not self.conditions.active:
                self.conditions.skip_nested_if()
                return
            if name == "if":
                condition = self._evaluate_condition(body, location)
            else:
                defined = self.macros.is_defined(self._require_macro_name(body))
                condition = defined if name == "ifdef" else not defined
            self.conditions.push_if(condition)
        elif name == "elif":
            self.conditions.on_elif(lambda: self._evaluate_condition(body, location))
        elif name == "else":
            self.conditions.on_else()
        else:
            self.conditions.on_endif()

    def _evaluate_condition(self, body: str, location: SourceLocation) -> bool:
        text = self._replace_defined(body, location)
        text = self.macros.expand(text, location, conditional=True)
        result = evaluate_expression(text)
        if result.error is not None:
            raise ExpressionError(
                f"Invalid #if expression: {result.error.value}",
                location.line,
                1,
                filename=location.filename,
            )
        return result.value != 0

    def _replace_defined(self, body: str, location: SourceLocation) -> str:
        def replace_defined(match: re.Match[str]) -> str:
            return "1" if self.macros.is_defined(match.group(1)) else "0"

        text = _DEFINED_PAREN_RE.sub(replace_defined, body)
        text = _DEFINED_BARE_RE.sub(replace_defined, text)
        if _DEFINED_WORD_RE.search(text) is not None:
            raise ExpressionError(
                "Invalid 'defined' operator",
                location.line,
                1,
                filename=location.filename,
            )
        return text

    def _handle_define(self, body: str, location: SourceLocation) -> None:
        try:
            self.macros.define(body, location)
        except DefinitionError as error:
            self._report(error)

    def _handle_include(self, body: str, location: SourceLocation) -> None:
        if self.sources.depth >= MAX_INCLUDE_DEPTH:
            raise DirectiveError(
                "#include nested too deeply",
                location.line,
                1,
                filename=location.filename,
            )
        operand = self.macros.expand(body, location).strip()
        match = _INCLUDE_RE.match(operand)
        if match is None:
            raise DirectiveError(
                "Invalid #include directive",
                location.line,
                1,
                filename=location.filename,
            )
        quoted = match.group("quote")
        include_name = quoted if quoted is not None else match.group("angle")
        try:
            self.sources.open(include_name, search_current_dir=quoted is not None)
        except SourceError as error:
            raise SourceError(
                error.message,
                location.line,
                1,
                filename=location.filename,
                code=error.code,
            ) from error

    def _handle_line(self, body: str, location: SourceLocation) -> str | None:
        expanded = self.macros.expand(body, location).strip()
        match = _LINE_RE.match(expanded)
        if match is None or int(match.group(1)) <= 0:
            raise DirectiveError(
                "Invalid #line directive",
                location.line,
                1,
                filename=location.filename,
            )
        line_number = int(match.group(1))
        filename: str | None = None
        literal = match.group(2)
        if literal is not None:
            try:
                filename = cast(str, ast.literal_eval(literal))
            except (SyntaxError, ValueError) as error:
                raise DirectiveError(
                    "Invalid #line directive",
                    location.line,
                    1,
                    filename=location.filename,
                ) from error
        self.sources.set_line_number(line_number, filename)
        if not self.options.line_directives:
            return None
        if filename is None:
            return f"#line {line_number}"
        return f"#line {line_number} {quote_string_literal(filename)}"

    def _require_macro_name(self, body: str) -> str:
        name = body.strip()
        if not name or scan_identifier(name, 0) != len(name):
            raise DirectiveError("Expected macro name")
        return name

    def _report(self, error: PreprocessorError) -> None:
        if self.options.warn_as_error:
            raise error
        self.warnings.append(error.diagnostic())


def _relocate(error: PreprocessorError, location: SourceLocation) -> PreprocessorError:
    return type(error)(
        error.message,
        location.line,
        1,
        filename=location.filename,
        code=error.code,
    )


def preprocess_source(
    source: str,
    *,
    filename: str = "<input>",
    options: PreprocessOptions | None = None,
) -> PreprocessResult:
    processor = Preprocessor(options)
    processor.push_source(source, filename)
    out = io.StringIO()
    processor.run(out)
    return PreprocessResult(
        out.getvalue(),
        processor.macros.listing(),
        tuple(processor.warnings),
    )


def preprocess_path(path: str | Path, *, options: PreprocessOptions | None = None) -> PreprocessResult:
    filename, source = read_source(str(path))
    return preprocess_source(source, filename=filename, options=options)
