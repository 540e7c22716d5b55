import unittest

from tests import _bootstrap  # noqa: F401
from stcpp.diag import (
    PP_EXPANSION_FAILED,
    PP_INCLUDE_NOT_FOUND,
    PP_INVALID_DIRECTIVE,
    PP_INVALID_IF_EXPR,
    PP_INVALID_MACRO,
    PP_READ_ERROR,
    DefinitionError,
    Diagnostic,
    DirectiveError,
    ExpansionError,
    ExpressionError,
    PreprocessorError,
    SourceError,
)


class DiagnosticTests(unittest.TestCase):
    def test_str_with_location(self) -> None:
        diagnostic = Diagnostic("expr", "main.c", "bad", 3, 1, PP_INVALID_IF_EXPR)
        self.assertEqual(str(diagnostic), "main.c:3:1: expr: bad")

    def test_str_without_location(self) -> None:
        self.assertEqual(str(Diagnostic("io", "main.c", "gone")), "main.c: io: gone")

    def test_as_dict(self) -> None:
        diagnostic = Diagnostic("pp", "main.c", "bad", 2, 1, PP_INVALID_DIRECTIVE)
        self.assertEqual(
            diagnostic.as_dict(),
            {
                "stage": "pp",
                "filename": "main.c",
                "line": 2,
                "column": 1,
                "code": PP_INVALID_DIRECTIVE,
                "message": "bad",
            },
        )


class PreprocessorErrorTests(unittest.TestCase):
    def test_message_and_location(self) -> None:
        error = DirectiveError("Duplicate #else", 4, 1, filename="main.c")
        self.assertEqual(str(error), "Duplicate #else at main.c:4:1")
        self.assertEqual(error.message, "Duplicate #else")
        self.assertEqual(str(DirectiveError("x", 2, 5)), "x at 2:5")
        self.assertEqual(str(DirectiveError("x")), "x")

    def test_diagnostic_defaults_filename(self) -> None:
        diagnostic = ExpressionError("bad", 1, 1).diagnostic()
        self.assertEqual(diagnostic.filename, "<input>")
        self.assertEqual(diagnostic.stage, "expr")

    def test_default_codes(self) -> None:
        self.assertEqual(DefinitionError("x").code, PP_INVALID_MACRO)
        self.assertEqual(ExpansionError("x").code, PP_EXPANSION_FAILED)
        self.assertEqual(ExpressionError("x").code, PP_INVALID_IF_EXPR)
        self.assertEqual(DirectiveError("x").code, PP_INVALID_DIRECTIVE)
        self.assertEqual(SourceError("x").code, PP_READ_ERROR)
        self.assertEqual(SourceError("x", code=PP_INCLUDE_NOT_FOUND).code, PP_INCLUDE_NOT_FOUND)

    def test_errors_are_value_errors(self) -> None:
        self.assertTrue(issubclass(PreprocessorError, ValueError))
        self.assertTrue(issubclass(SourceError, PreprocessorError))


if __name__ == "__main__":
    unittest.main()
