import unittest

from quickfuck import ExecutionState, InputExhausted, OutOfBounds, VisualizerSession
from quickfuck.bf_interpreter import StepLimitExceeded
from quickfuck.visualizer import _format_code_window, format_state


class VisualizerSessionTests(unittest.TestCase):
    def test_basic_stepping(self) -> None:
        session = VisualizerSession("+++.", tape_window=2, max_steps=100)
        initial = session.current_state()
        self.assertIsNone(initial.command)
        states = session.step_forward(2)
        self.assertEqual(len(states), 2)
        self.assertEqual(states[-1].step, 2)
        self.assertFalse(session.is_finished())

    def test_breakpoint(self) -> None:
        session = VisualizerSession("+++.", max_steps=100)
        session.add_breakpoint(2)
        session.run_until_break()
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(session.current_state().position, 2)

    def test_restart(self) -> None:
        session = VisualizerSession("+.", max_steps=100)
        session.step_forward(3)
        self.assertTrue(session.is_finished())
        session.restart()
        self.assertFalse(session.is_finished())
        self.assertEqual(session.current_state().step, 0)

    def test_empty_program_is_finished(self) -> None:
        session = VisualizerSession("")
        self.assertTrue(session.is_finished())
        self.assertEqual(session.step_forward(1), [])

    def test_bounded_engine(self) -> None:
        session = VisualizerSession(">>", engine="bounded", width=2)
        with self.assertRaises(OutOfBounds):
            session.run_until_break()
        self.assertTrue(session.is_finished())
        self.assertIn("beyond the tape width 2", session.error)
        self.assertEqual(session.current_state().pointer, 1)
        self.assertEqual(session.current_state().tape_size, 2)


class VisualizerSessionInputTests(unittest.TestCase):
    def test_input_template_is_consumed(self) -> None:
        session = VisualizerSession(",.", input_template=b"Q")
        session.run_until_break()
        self.assertTrue(session.is_finished())
        self.assertEqual(session.current_state().output, b"Q")

    def test_waits_for_input_and_resumes(self) -> None:
        session = VisualizerSession(",.")
        with self.assertRaises(InputExhausted):
            session.step_forward(1)
        self.assertTrue(session.waiting_for_input)
        self.assertFalse(session.is_finished())
        self.assertEqual(session.current_state().step, 0)

        session.provide_input("z")
        self.assertFalse(session.waiting_for_input)
        states = session.run_until_break()
        self.assertEqual(len(states), 2)
        self.assertEqual(states[-1].output, b"z")
        self.assertTrue(session.is_finished())

    def test_restart_restores_input_template(self) -> None:
        session = VisualizerSession(",.", input_template=b"a")
        session.run_until_break()
        session.restart()
        states = session.run_until_break()
        self.assertEqual(states[-1].output, b"a")


class VisualizerSessionAdvancedTests(unittest.TestCase):
    def test_step_forward_zero_count_keeps_state(self) -> None:
        session = VisualizerSession("++", history_limit=5)
        initial_state = session.current_state()
        states = session.step_forward(0)
        self.assertEqual(states, [])
        self.assertIs(session.current_state(), initial_state)
        self.assertFalse(session.is_finished())
        self.assertIsNone(session.hit_breakpoint)

    def test_step_forward_stops_on_breakpoint(self) -> None:
        session = VisualizerSession("+++.>", max_steps=100)
        session.add_breakpoint(2)
        states = session.step_forward(10)
        self.assertTrue(states)
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(states[-1].position, 2)
        self.assertFalse(session.is_finished())

    def test_run_until_break_limit(self) -> None:
        session = VisualizerSession("+++++.", max_steps=100)
        session.add_breakpoint(5)
        states = session.run_until_break(limit=2)
        self.assertEqual(len(states), 2)
        self.assertIsNone(session.hit_breakpoint)
        self.assertEqual(session.current_state(), states[-1])
        self.assertFalse(session.is_finished())

    def test_run_until_break_propagates_step_limit(self) -> None:
        session = VisualizerSession("+[]", max_steps=2)
        with self.assertRaises(StepLimitExceeded):
            session.run_until_break()
        self.assertTrue(session.is_finished())

    def test_history_limit_discards_old_entries(self) -> None:
        session = VisualizerSession("+++++.", history_limit=3, max_steps=100)
        session.step_forward(5)
        self.assertEqual(len(session.history), 3)
        self.assertGreater(session.history[0].step, 0)
        self.assertEqual(session.history[-1], session.current_state())

    def test_breakpoint_management_helpers(self) -> None:
        session = VisualizerSession("+++.")
        session.add_breakpoint(3)
        session.add_breakpoint(1)
        self.assertEqual(session.list_breakpoints(), [1, 3])
        self.assertTrue(session.remove_breakpoint(1))
        self.assertFalse(session.remove_breakpoint(99))
        session.clear_breakpoints()
        self.assertEqual(session.list_breakpoints(), [])


class VisualizerUtilityTests(unittest.TestCase):
    def test_format_code_window_marks_end(self) -> None:
        self.assertEqual(_format_code_window("+", 5), "+[END]")

    def test_format_code_window_empty(self) -> None:
        self.assertEqual(_format_code_window("", 0), "(empty)")

    def test_format_state_renders_core_sections(self) -> None:
        state = ExecutionState(
            step=3,
            position=1,
            command="+",
            pointer=1,
            tape_start=0,
            tape=[1, 2, 3],
            output=b"A",
            code_length=3,
            loop_depth=0,
            tape_size=3,
        )
        rendered = format_state(state, "++.")
        self.assertIn("step=3 pos=1/3 command='+' pointer=1 loops=0", rendered)
        self.assertIn("output=b'A'", rendered)
        self.assertIn("[1:002]", rendered)
        self.assertIn("tape(3)=", rendered)
        self.assertIn("code=+[+].", rendered)


if __name__ == "__main__":
    unittest.main()
