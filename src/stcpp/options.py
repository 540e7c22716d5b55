from dataclasses import dataclass
from typing import Literal

DiagFormat = Literal["human", "json"]


@dataclass(frozen=True)
class PreprocessOptions:
    include_dirs: tuple[str, ...] = ()
    defines: tuple[str, ...] = ()
    undefs: tuple[str, ...] = ()
    diag_format: DiagFormat = "human"
    warn_as_error: bool = False
    line_directives: bool = True
    use_cpath: bool = True
    restart_limit: int = 100
    line_capacity: int = 4096

    def __post_init__(self) -> None:
        if self.diag_format not in {"human", "json"}:
            raise ValueError(f"Unsupported diagnostic format: {self.diag_format}")
        if self.restart_limit < 0:
            raise ValueError(f"Invalid restart limit: {self.restart_limit}")
        if self.line_capacity <= 0:
            raise ValueError(f"Invalid line capacity: {self.line_capacity}")


def normalize_options(options: PreprocessOptions | None) -> PreprocessOptions:
    return PreprocessOptions() if options is None else options
