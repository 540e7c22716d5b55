import argparse
import io
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO, cast

from stcpp.diag import Diagnostic, PreprocessorError
from stcpp.options import PreprocessOptions
from stcpp.preprocessor import Preprocessor
from stcpp.sources import read_source

__version__ = "0.1.0"


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stcpp",
        description="Expand macros, includes and conditional directives in C-like source.",
    )
    parser.add_argument("input", help="path to a source file, or - to read from stdin")
    parser.add_argument(
        "output",
        nargs="?",
        default="-",
        help="path of the output file, or - for stdout (default)",
    )
    parser.add_argument("-D", dest="defines", action="append", default=[], help="define macro")
    parser.add_argument(
        "-U",
        dest="undefs",
        action="append",
        default=[],
        help="undefine macro and ignore later definitions of it",
    )
    parser.add_argument("-I", dest="include_dirs", action="append", default=[], help="include path")
    parser.add_argument(
        "-P",
        dest="line_directives",
        action="store_false",
        help="do not re-emit #line directives",
    )
    parser.add_argument(
        "-Werror",
        dest="warn_as_error",
        action="store_true",
        help="treat warnings (malformed #define, #error) as errors",
    )
    parser.add_argument(
        "--diag-format",
        choices=("human", "json"),
        default="human",
        help="diagnostic output format",
    )
    parser.add_argument(
        "--dump-macro-table",
        action="store_true",
        help="print the final macro table to stderr",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_diagnostic(diagnostic: Diagnostic, diag_format: str) -> None:
    if diag_format == "json":
        print(json.dumps(diagnostic.as_dict(), separators=(",", ":")), file=sys.stderr)
    else:
        print(diagnostic, file=sys.stderr)


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    parser = _build_arg_parser()
    effective_argv = list(argv) if argv is not None else sys.argv[1:]
    try:
        args = parser.parse_args(effective_argv)
    except SystemExit as error:
        return cast(int, error.code)
    options = PreprocessOptions(
        include_dirs=tuple(args.include_dirs),
        defines=tuple(args.defines),
        undefs=tuple(args.undefs),
        diag_format=args.diag_format,
        warn_as_error=args.warn_as_error,
        line_directives=args.line_directives,
    )
    try:
        if args.input == "-":
            stream = sys.stdin if stdin is None else stdin
            filename, source = "<stdin>", stream.read()
        else:
            filename, source = read_source(args.input)
    except (OSError, UnicodeError) as error:
        print(f"stcpp: I/O error: {error}", file=sys.stderr)
        return 1
    output = io.StringIO()
    try:
        processor = Preprocessor(options)
        processor.push_source(source, filename)
        processor.run(output)
    except PreprocessorError as error:
        _print_diagnostic(error.diagnostic(), args.diag_format)
        return 1
    for warning in processor.warnings:
        _print_diagnostic(warning, args.diag_format)
    try:
        if args.output == "-":
            (sys.stdout if stdout is None else stdout).write(output.getvalue())
        else:
            Path(args.output).write_text(output.getvalue(), encoding="utf-8")
    except OSError as error:
        print(f"stcpp: I/O error: {error}", file=sys.stderr)
        return 1
    if args.dump_macro_table:
        for line in processor.macros.listing():
            print(line, file=sys.stderr)
    return 0
