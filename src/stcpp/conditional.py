from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from stcpp.diag import DirectiveError


class BranchState(Enum):
    IN_IF = auto()
    IN_ELSE = auto()


@dataclass
class ConditionFrame:
    state: BranchState
    # True once any branch of the if/elif chain has been chosen.
    condition: bool
    skip_depth: int = 0


class ConditionStack:
    def __init__(self) -> None:
        self._frames: list[ConditionFrame] = []
        self.active = True

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def frames(self) -> tuple[ConditionFrame, ...]:
        return tuple(self._frames)

    @property
    def skipping_nested(self) -> bool:
        return not self.active and bool(self._frames) and self._frames[-1].skip_depth > 0

    def push_if(self, condition: bool) -> None:
        self._frames.append(ConditionFrame(BranchState.IN_IF, condition))
        self.active = condition

    def skip_nested_if(self) -> None:
        self._top("#if").skip_depth += 1

    def on_elif(self, evaluate: Callable[[], bool]) -> None:
        frame = self._top("#elif")
        if not self.active and frame.skip_depth > 0:
            return
        if frame.state is BranchState.IN_ELSE:
            raise DirectiveError("#elif after #else")
        if frame.condition:
            self.active = False
            return
        result = evaluate()
        frame.condition = result
        self.active = result

    def on_else(self) -> None:
        frame = self._top("#else")
        if not self.active and frame.skip_depth > 0:
            return
        if frame.state is BranchState.IN_ELSE:
            raise DirectiveError("Duplicate #else")
        frame.state = BranchState.IN_ELSE
        self.active = not frame.condition

    def on_endif(self) -> None:
        frame = self._top("#endif")
        if not self.active and frame.skip_depth > 0:
            frame.skip_depth -= 1
            return
        # Frames are only pushed while active.
        self._frames.pop()
        self.active = True

    def require_closed(self) -> None:
        if self._frames:
            raise DirectiveError("Unterminated conditional directive")

    def _top(self, directive: str) -> ConditionFrame:
        if not self._frames:
            raise DirectiveError(f"Unexpected {directive}")
        return self._frames[-1]
