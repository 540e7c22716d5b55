import string
from dataclasses import dataclass
from enum import Enum

from stcpp.scanner import skip_spaces

_INT_BITS = 64
_INT_MASK = (1 << _INT_BITS) - 1
_INT_SIGN = 1 << (_INT_BITS - 1)

# Loosest first; ?: sits above all of these.
_BINARY_LEVELS: tuple[frozenset[str], ...] = (
    frozenset({"||"}),
    frozenset({"&&"}),
    frozenset({"|"}),
    frozenset({"^"}),
    frozenset({"&"}),
    frozenset({"==", "!="}),
    frozenset({"<", "<=", ">", ">="}),
    frozenset({"<<", ">>"}),
    frozenset({"+", "-"}),
    frozenset({"*", "/", "%"}),
)
_OPERATORS = (
    "<<",
    ">>",
    "<=",
    ">=",
    "==",
    "!=",
    "&&",
    "||",
    "<",
    ">",
    "+",
    "-",
    "*",
    "/",
    "%",
    "&",
    "|",
    "^",
    "!",
    "~",
    "?",
    ":",
    "(",
    ")",
)
_BINARY_PRECEDENCE = {op: level for level, ops in enumerate(_BINARY_LEVELS) for op in ops}
_UNARY_OPERATORS = frozenset({"+", "-", "!", "~"})
_SIMPLE_ESCAPES = {
    "n": 10,
    "t": 9,
    "v": 11,
    "b": 8,
    "r": 13,
    "f": 12,
    "a": 7,
    "\\": 92,
    "'": 39,
    '"': 34,
    "?": 63,
}


class ExprErrorCode(Enum):
    INVALID_DIGIT = "invalid digit in integer constant"
    UNEXPECTED_CHARACTER = "unexpected character"
    MISSING_PARENTHESIS = "missing ')'"
    MISSING_COLON = "missing ':' in conditional expression"
    DIVISION_BY_ZERO = "division by zero"
    TOO_DEEP = "expression nested too deeply"


@dataclass(frozen=True)
class ExprResult:
    value: int
    error: ExprErrorCode | None = None
    position: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _ExprFailure(Exception):
    def __init__(self, code: ExprErrorCode, position: int) -> None:
        super().__init__(code.value)
        self.code = code
        self.position = position


def evaluate_expression(text: str) -> ExprResult:
    parser = _Parser(text)
    try:
        value = parser.parse()
    except _ExprFailure as failure:
        return ExprResult(0, failure.code, failure.position)
    except RecursionError:
        return ExprResult(0, ExprErrorCode.TOO_DEEP, parser.pos)
    return ExprResult(value)


def wrap_int(value: int) -> int:
    value &= _INT_MASK
    return value - (1 << _INT_BITS) if value & _INT_SIGN else value


def _truncating_div(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return -quotient if (left < 0) != (right < 0) else quotient


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, code: ExprErrorCode) -> None:
        raise _ExprFailure(code, self.pos)

    def peek_operator(self) -> str | None:
        self.pos = skip_spaces(self.text, self.pos)
        for op in _OPERATORS:
            if self.text.startswith(op, self.pos):
                return op
        return None

    def parse(self) -> int:
        value = self.ternary(True)
        self.pos = skip_spaces(self.text, self.pos)
        if self.pos < len(self.text):
            self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
        return value

    def ternary(self, live: bool) -> int:
        condition = self.binary(0, live)
        if self.peek_operator() != "?":
            return condition
        self.pos += 1
        when_true = self.ternary(live and condition != 0)
        if self.peek_operator() != ":":
            self.fail(ExprErrorCode.MISSING_COLON)
        self.pos += 1
        when_false = self.ternary(live and condition == 0)
        return when_true if condition else when_false

    def binary(self, min_level: int, live: bool) -> int:
        left = self.unary(live)
        while True:
            op = self.peek_operator()
            if op is None or _BINARY_PRECEDENCE.get(op, -1) < min_level:
                return left
            level = _BINARY_PRECEDENCE[op]
            op_pos = self.pos
            self.pos += len(op)
            # Operands skipped by short-circuiting are parsed, never evaluated.
            if op == "&&":
                right = self.binary(level + 1, live and left != 0)
                left = int(left != 0 and right != 0)
            elif op == "||":
                right = self.binary(level + 1, live and left == 0)
                left = int(left != 0 or right != 0)
            else:
                right = self.binary(level + 1, live)
                left = self.apply(op, left, right, op_pos) if live else 0

    def apply(self, op: str, left: int, right: int, op_pos: int) -> int:
        if op in {"/", "%"} and right == 0:
            self.pos = op_pos
            self.fail(ExprErrorCode.DIVISION_BY_ZERO)
        if op == "*":
            value = left * right
        elif op == "/":
            value = _truncating_div(left, right)
        elif op == "%":
            value = left - right * _truncating_div(left, right)
        elif op == "+":
            value = left + right
        elif op == "-":
            value = left - right
        elif op == "<<":
            value = left << (right & (_INT_BITS - 1))
        elif op == ">>":
            value = left >> (right & (_INT_BITS - 1))
        elif op == "<":
            value = int(left < right)
        elif op == "<=":
            value = int(left <= right)
        elif op == ">":
            value = int(left > right)
        elif op == ">=":
            value = int(left >= right)
        elif op == "==":
            value = int(left == right)
        elif op == "!=":
            value = int(left != right)
        elif op == "&":
            value = left & right
        elif op == "^":
            value = left ^ right
        else:
            value = left | right
        return wrap_int(value)

    def unary(self, live: bool) -> int:
        prefix: list[str] = []
        while True:
            op = self.peek_operator()
            if op not in _UNARY_OPERATORS:
                break
            prefix.append(op)
            self.pos += 1
        value = self.primary(live)
        for op in reversed(prefix):
            if op == "-":
                value = wrap_int(-value)
            elif op == "!":
                value = int(value == 0)
            elif op == "~":
                value = wrap_int(~value)
        return value

    def primary(self, live: bool) -> int:
        self.pos = skip_spaces(self.text, self.pos)
        if self.pos >= len(self.text):
            self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
        ch = self.text[self.pos]
        if ch == "(":
            self.pos += 1
            value = self.ternary(live)
            if self.peek_operator() != ")":
                self.fail(ExprErrorCode.MISSING_PARENTHESIS)
            self.pos += 1
            return value
        if ch.isdigit():
            return self.number()
        if ch == "'":
            return self.char_constant()
        self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
        return 0

    def number(self) -> int:
        text = self.text
        base = 10
        if text[self.pos] == "0":
            self.pos += 1
            prefix = text[self.pos : self.pos + 1]
            if prefix in ("x", "X"):
                base = 16
                self.pos += 1
            elif prefix in ("b", "B"):
                base = 2
                self.pos += 1
            else:
                base = 8
        value = 0
        while self.pos < len(text) and text[self.pos] in string.hexdigits:
            digit = int(text[self.pos], 16)
            if digit >= base:
                self.fail(ExprErrorCode.INVALID_DIGIT)
            value = value * base + digit
            self.pos += 1
        while self.pos < len(text) and text[self.pos] in "uUlL":
            self.pos += 1
        return wrap_int(value)

    def char_constant(self) -> int:
        text = self.text
        self.pos += 1
        ch = text[self.pos : self.pos + 1]
        if ch in ("", "'", "\n"):
            self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
        if ch == "\\":
            self.pos += 1
            value = self.escape()
        else:
            value = ord(ch)
            self.pos += 1
        if text[self.pos : self.pos + 1] != "'":
            self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
        self.pos += 1
        return value

    def escape(self) -> int:
        text = self.text
        esc = text[self.pos : self.pos + 1]
        if esc in _SIMPLE_ESCAPES:
            self.pos += 1
            return _SIMPLE_ESCAPES[esc]
        if esc and esc in "01234567":
            end = self.pos
            while end < len(text) and end - self.pos < 3 and text[end] in "01234567":
                end += 1
            value = int(text[self.pos : end], 8)
            self.pos = end
            return value
        if esc == "x":
            start = self.pos + 1
            end = start
            while end < len(text) and text[end] in string.hexdigits:
                end += 1
            if end == start:
                self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
            self.pos = end
            return int(text[start:end], 16)
        self.fail(ExprErrorCode.UNEXPECTED_CHARACTER)
        return 0
