import unittest

from tests import _bootstrap  # noqa: F401
from stcpp.conditional import BranchState, ConditionStack
from stcpp.diag import DirectiveError


class ConditionStackTests(unittest.TestCase):
    def setUp(self) -> None:
        self.stack = ConditionStack()
        self.evaluated: list[str] = []

    def evaluator(self, label: str, value: bool):
        def evaluate() -> bool:
            self.evaluated.append(label)
            return value

        return evaluate

    def test_if_else_endif(self) -> None:
        self.assertTrue(self.stack.active)
        self.stack.push_if(True)
        self.assertTrue(self.stack.active)
        self.stack.on_else()
        self.assertFalse(self.stack.active)
        self.assertIs(self.stack.frames[-1].state, BranchState.IN_ELSE)
        self.stack.on_endif()
        self.assertTrue(self.stack.active)
        self.assertEqual(self.stack.depth, 0)

    def test_false_if_takes_else(self) -> None:
        self.stack.push_if(False)
        self.assertFalse(self.stack.active)
        self.stack.on_else()
        self.assertTrue(self.stack.active)

    def test_elif_chain_evaluates_until_taken(self) -> None:
        self.stack.push_if(False)
        self.stack.on_elif(self.evaluator("first", False))
        self.assertFalse(self.stack.active)
        self.stack.on_elif(self.evaluator("second", True))
        self.assertTrue(self.stack.active)
        self.stack.on_elif(self.evaluator("third", True))
        self.assertFalse(self.stack.active)
        self.stack.on_else()
        self.assertFalse(self.stack.active)
        self.assertEqual(self.evaluated, ["first", "second"])

    def test_elif_after_taken_if_is_not_evaluated(self) -> None:
        self.stack.push_if(True)
        self.stack.on_elif(self.evaluator("elif", True))
        self.assertFalse(self.stack.active)
        self.assertEqual(self.evaluated, [])

    def test_nested_if_in_skipped_branch(self) -> None:
        self.stack.push_if(False)
        self.stack.skip_nested_if()
        self.assertTrue(self.stack.skipping_nested)
        self.assertEqual(self.stack.depth, 1)
        self.stack.on_elif(self.evaluator("nested", True))
        self.stack.on_else()
        self.stack.on_else()
        self.assertFalse(self.stack.active)
        self.assertIs(self.stack.frames[-1].state, BranchState.IN_IF)
        self.stack.on_endif()
        self.assertFalse(self.stack.skipping_nested)
        self.assertEqual(self.stack.depth, 1)
        self.stack.on_else()
        self.assertTrue(self.stack.active)
        self.stack.on_endif()
        self.assertEqual(self.stack.depth, 0)
        self.assertEqual(self.evaluated, [])

    def test_endif_restores_active(self) -> None:
        self.stack.push_if(True)
        self.stack.push_if(False)
        self.stack.on_endif()
        self.assertTrue(self.stack.active)
        self.assertEqual(self.stack.depth, 1)

    def test_elif_after_else(self) -> None:
        self.stack.push_if(False)
        self.stack.on_else()
        with self.assertRaises(DirectiveError) as ctx:
            self.stack.on_elif(self.evaluator("late", True))
        self.assertEqual(ctx.exception.message, "#elif after #else")

    def test_duplicate_else(self) -> None:
        self.stack.push_if(True)
        self.stack.on_else()
        with self.assertRaises(DirectiveError) as ctx:
            self.stack.on_else()
        self.assertEqual(ctx.exception.message, "Duplicate #else")

    def test_directives_without_open_if(self) -> None:
        for action, directive in (
            (self.stack.on_else, "#else"),
            (self.stack.on_endif, "#endif"),
            (self.stack.skip_nested_if, "#if"),
        ):
            with self.subTest(directive=directive):
                with self.assertRaises(DirectiveError) as ctx:
                    action()
                self.assertEqual(ctx.exception.message, f"Unexpected {directive}")
        with self.assertRaises(DirectiveError):
            self.stack.on_elif(self.evaluator("orphan", True))

    def test_require_closed(self) -> None:
        self.stack.require_closed()
        self.stack.push_if(True)
        with self.assertRaises(DirectiveError) as ctx:
            self.stack.require_closed()
        self.assertEqual(ctx.exception.message, "Unterminated conditional directive")


if __name__ == "__main__":
    unittest.main()
