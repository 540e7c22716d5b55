import unittest

from tests import _bootstrap  # noqa: F401
from stcpp.scanner import (
    is_ident_char,
    is_quote,
    scan_identifier,
    skip_literal,
    skip_number,
    skip_parenthesized,
    skip_spaces,
)


class ScannerTests(unittest.TestCase):
    def test_is_ident_char(self) -> None:
        self.assertTrue(is_ident_char("a", 0))
        self.assertTrue(is_ident_char("_", 0))
        self.assertFalse(is_ident_char("1", 0))
        self.assertTrue(is_ident_char("1", 3))
        self.assertFalse(is_ident_char("", 0))
        self.assertFalse(is_ident_char("a", -1))
        self.assertFalse(is_ident_char("+", 1))

    def test_scan_identifier(self) -> None:
        self.assertEqual(scan_identifier("abc+1", 0), 3)
        self.assertEqual(scan_identifier("x = foo_1(2)", 4), 9)
        self.assertEqual(scan_identifier("+a", 0), 0)

    def test_skip_spaces(self) -> None:
        self.assertEqual(skip_spaces("  \tx", 0), 3)
        self.assertEqual(skip_spaces("x", 0), 0)
        self.assertEqual(skip_spaces("   ", 1), 3)

    def test_skip_literal_honours_escapes(self) -> None:
        self.assertEqual(skip_literal('"a\\"b" x', 0), 6)
        self.assertEqual(skip_literal("'(' x", 0), 3)

    def test_skip_literal_unterminated(self) -> None:
        self.assertEqual(skip_literal('"abc', 0), 4)

    def test_skip_number_includes_suffixes(self) -> None:
        self.assertEqual(skip_number("0x1FUL+1", 0), 6)
        self.assertEqual(skip_number("1.5e3f)", 0), 6)

    def test_skip_parenthesized(self) -> None:
        self.assertEqual(skip_parenthesized('(a, (b), ")") + c', 0), 13)
        self.assertEqual(skip_parenthesized("f(x) y", 1), 4)

    def test_skip_parenthesized_unbalanced(self) -> None:
        self.assertEqual(skip_parenthesized("(a, (b)", 0), -1)

    def test_is_quote(self) -> None:
        self.assertTrue(is_quote('"'))
        self.assertTrue(is_quote("'"))
        self.assertFalse(is_quote(""))
        self.assertFalse(is_quote("a"))


if __name__ == "__main__":
    unittest.main()
