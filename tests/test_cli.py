from pathlib import Path
import tempfile
from contextlib import redirect_stderr
import io
import unittest

from quickfuck import GrowableInterpreter
from quickfuck.cli import format_tape, main as cli_main


class CLITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write_source(self, content: str, name: str = "program.bf") -> Path:
        path = self.tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    def _run(self, argv, stdin_text: str = ""):
        raw = io.BytesIO()
        stdout = io.TextIOWrapper(raw, encoding="utf-8", newline="\n")
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            exit_code = cli_main(argv, stdin=io.StringIO(stdin_text), stdout=stdout)
        stdout.flush()
        return exit_code, raw.getvalue(), stderr.getvalue()


class CLIRunTests(CLITestCase):
    def test_runs_file(self) -> None:
        source_path = self._write_source("+" * 65 + ".")
        exit_code, out, _ = self._run([str(source_path)])
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"A\n")

    def test_eval_flag(self) -> None:
        exit_code, out, _ = self._run(["+" * 66 + ".", "--eval"])
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"B\n")

    def test_input_option(self) -> None:
        exit_code, out, _ = self._run([",.,.", "-e", "--input", "ok"])
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"ok\n")

    def test_reads_stdin_line_when_input_runs_out(self) -> None:
        exit_code, out, _ = self._run([",.,.", "-e", "--input", "a"], stdin_text="b\nignored\n")
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"ab\n")

    def test_stdin_eof_is_an_error(self) -> None:
        exit_code, out, err = self._run([",.", "-e"])
        self.assertEqual(exit_code, 1)
        self.assertIn("Input is empty", err)

    def test_performance_flag_default_width(self) -> None:
        exit_code, _, _ = self._run([">" * 255 + "+.", "-e", "-p"])
        self.assertEqual(exit_code, 0)

        exit_code, _, err = self._run([">" * 256, "-e", "-p"])
        self.assertEqual(exit_code, 1)
        self.assertIn("beyond the tape width 256", err)

    def test_performance_flag_before_path_uses_default_width(self) -> None:
        source_path = self._write_source(">" * 255 + "+" * 65 + ".")
        exit_code, out, _ = self._run(["-p", str(source_path)])
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"A\n")

        overflow_path = self._write_source(">" * 256, name="overflow.bf")
        exit_code, _, err = self._run(["-p", str(overflow_path)])
        self.assertEqual(exit_code, 1)
        self.assertIn("beyond the tape width 256", err)

    def test_performance_width_before_path(self) -> None:
        source_path = self._write_source(">>")
        exit_code, _, err = self._run(["-p", "2", str(source_path)])
        self.assertEqual(exit_code, 1)
        self.assertIn("beyond the tape width 2", err)

    def test_performance_rejects_non_positive_width(self) -> None:
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                cli_main(["+", "-e", "-p", "0"])
        self.assertEqual(ctx.exception.code, 2)

    def test_missing_source_errors(self) -> None:
        exit_code, _, err = self._run(["-v"])
        self.assertEqual(exit_code, 1)
        self.assertIn("path cannot be empty", err)

    def test_empty_stdin_line_reads_nul(self) -> None:
        exit_code, out, _ = self._run([",.,.", "-e"], stdin_text="\nB\n")
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"\x00B\n")

    def test_performance_width_out_of_bounds(self) -> None:
        exit_code, _, err = self._run([">>>", "-e", "-p", "3"])
        self.assertEqual(exit_code, 1)
        self.assertIn("Error: Pointer moved beyond the tape width 3", err)

    def test_growable_clamps_left_moves(self) -> None:
        exit_code, out, _ = self._run(["<+.", "-e"])
        self.assertEqual(exit_code, 0)
        self.assertEqual(out, b"\x01\n")

    def test_verbose_dumps_tape(self) -> None:
        exit_code, out, _ = self._run([">+", "-e", "-v"])
        self.assertEqual(exit_code, 0)
        text = out.decode("utf-8")
        self.assertIn("Cell\tVal\tChar", text)
        self.assertIn("1:\t1\t'.'", text)

    def test_debug_marker_prints_tape(self) -> None:
        exit_code, out, _ = self._run(["+++#.", "-e"])
        self.assertEqual(exit_code, 0)
        text = out.decode("utf-8")
        self.assertIn("Debug:", text)
        self.assertIn("0:\t3\t'.'", text)
        self.assertTrue(text.endswith("\x03\n"))

    def test_unbalanced_loop_error(self) -> None:
        exit_code, _, err = self._run(["]", "-e"])
        self.assertEqual(exit_code, 1)
        self.assertIn("Unmatched ']'", err)

    def test_max_steps(self) -> None:
        exit_code, _, err = self._run(["+[]", "-e", "--max-steps", "50"])
        self.assertEqual(exit_code, 1)
        self.assertIn("step count", err)


class CLIErrorTests(CLITestCase):
    def test_missing_file_errors(self) -> None:
        exit_code, _, err = self._run(["does_not_exist.bf"])
        self.assertEqual(exit_code, 1)
        self.assertIn("not found", err)

    def test_empty_program_errors(self) -> None:
        source_path = self._write_source("")
        exit_code, _, err = self._run([str(source_path)])
        self.assertEqual(exit_code, 1)
        self.assertIn("No code to evaluate", err)


class FormatTapeTests(unittest.TestCase):
    def test_format_tape(self) -> None:
        interpreter = GrowableInterpreter("+" * 65 + ">")
        interpreter.interpret()
        self.assertEqual(
            format_tape(interpreter),
            "Cell\tVal\tChar\n0:\t65\t'A'\n1:\t0\t'.'",
        )


if __name__ == "__main__":
    unittest.main()
