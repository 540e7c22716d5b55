from dataclasses import dataclass

PP_UNKNOWN_DIRECTIVE = "STCPP-PP-0101"
PP_INCLUDE_NOT_FOUND = "STCPP-PP-0102"
PP_INVALID_IF_EXPR = "STCPP-PP-0103"
PP_INVALID_DIRECTIVE = "STCPP-PP-0104"
PP_ERROR_DIRECTIVE = "STCPP-PP-0105"
PP_INVALID_MACRO = "STCPP-PP-0201"
PP_EXPANSION_FAILED = "STCPP-PP-0202"
PP_READ_ERROR = "STCPP-PP-0301"


@dataclass(frozen=True)
class Diagnostic:
    stage: str
    filename: str
    message: str
    line: int | None = None
    column: int | None = None
    code: str | None = None

    def __str__(self) -> str:
        if self.line is None or self.column is None:
            return f"{self.filename}: {self.stage}: {self.message}"
        return f"{self.filename}:{self.line}:{self.column}: {self.stage}: {self.message}"

    def as_dict(self) -> dict[str, object]:
        return {
            "stage": self.stage,
            "filename": self.filename,
            "line": self.line,
            "column": self.column,
            "code": self.code,
            "message": self.message,
        }


class PreprocessorError(ValueError):
    stage = "pp"
    default_code = PP_INVALID_DIRECTIVE

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        *,
        filename: str | None = None,
        code: str | None = None,
    ) -> None:
        if line is None or column is None:
            super().__init__(message)
        else:
            location = f"{filename}:{line}:{column}" if filename is not None else f"{line}:{column}"
            super().__init__(f"{message} at {location}")
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        self.code = self.default_code if code is None else code

    def diagnostic(self) -> Diagnostic:
        filename = "<input>" if self.filename is None else self.filename
        return Diagnostic(self.stage, filename, self.message, self.line, self.column, self.code)


class DefinitionError(PreprocessorError):
    stage = "macro"
    default_code = PP_INVALID_MACRO


class ExpansionError(PreprocessorError):
    stage = "macro"
    default_code = PP_EXPANSION_FAILED


class ExpressionError(PreprocessorError):
    stage = "expr"
    default_code = PP_INVALID_IF_EXPR


class DirectiveError(PreprocessorError):
    default_code = PP_INVALID_DIRECTIVE


class SourceError(PreprocessorError):
    stage = "io"
    default_code = PP_READ_ERROR
