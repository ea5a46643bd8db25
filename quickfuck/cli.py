from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional, TextIO, Tuple

from .bf_interpreter import (
    DEFAULT_TAPE_WIDTH,
    BrainfuckError,
    InputExhausted,
    Interpreter,
    StepLimitExceeded,
    create_interpreter,
)

logger = logging.getLogger(__name__)

DEBUG_MARKER = "#"


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"File {path} not found")
    return source_path.read_text(encoding="utf-8")


def _split_performance(value: str) -> Tuple[int, Optional[str]]:
    """Return the tape width for ``-p VALUE`` and the token left over, if any.

    A value that is not a number keeps the default width and is handed back
    so it can be used as the source argument.
    """
    try:
        width = int(value)
    except ValueError:
        return DEFAULT_TAPE_WIDTH, value
    if width < 1:
        raise ValueError("tape width must be a positive integer")
    return width, None


def format_tape(interpreter: Interpreter) -> str:
    lines = ["Cell\tVal\tChar"]
    for index, value in enumerate(interpreter.get_tape()):
        char = chr(value) if 32 <= value < 127 else "."
        lines.append(f"{index}:\t{value}\t'{char}'")
    return "\n".join(lines)


def _flush_output(interpreter: Interpreter, stream: BinaryIO) -> None:
    data = interpreter.get_output()
    if data:
        stream.write(data)
        stream.flush()
        interpreter.clear_output()


def execute(
    interpreter: Interpreter,
    stdin: TextIO,
    stdout: TextIO,
    max_steps: Optional[int] = None,
) -> int:
    """Drive ``interpreter`` one step at a time, streaming output to ``stdout``.

    Input is pulled from ``stdin`` one line at a time whenever the program
    exhausts its buffer. A ``#`` in the source prints a tape dump before it is
    stepped over. Returns the number of instructions executed.
    """
    binary_out = stdout.buffer
    steps = 0
    while not interpreter.finished:
        if max_steps is not None and steps >= max_steps:
            raise StepLimitExceeded("Brainfuck program exceeded allowed step count")
        if interpreter.code[interpreter.position] == DEBUG_MARKER:
            _flush_output(interpreter, binary_out)
            stdout.write("\nDebug:\n" + format_tape(interpreter) + "\n\n")
            stdout.flush()
        try:
            interpreter.step()
        except InputExhausted:
            _flush_output(interpreter, binary_out)
            line = stdin.readline()
            if not line:
                raise
            logger.debug("Read %d characters of input", len(line))
            # An empty line still feeds one NUL byte
            interpreter.add_input(line.rstrip("\n") or b"\x00")
            continue
        steps += 1
    _flush_output(interpreter, binary_out)
    return steps


def main(
    argv: Optional[List[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    parser = argparse.ArgumentParser(
        prog="quickfuck",
        description="Run a Brainfuck program on a growable or fixed-width tape",
    )
    parser.add_argument(
        "source",
        nargs="?",
        help="Path to a Brainfuck source file (or code with --eval)",
    )
    parser.add_argument(
        "-p",
        "--performance",
        nargs="?",
        const=str(DEFAULT_TAPE_WIDTH),
        default=None,
        metavar="WIDTH",
        help="Use the fixed-width tape engine, optionally with a tape width (default: 256)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show the contents of the cells after evaluation ends",
    )
    parser.add_argument(
        "-e",
        "--eval",
        action="store_true",
        help="Treat SOURCE as Brainfuck code instead of a file path",
    )
    parser.add_argument(
        "--input",
        default="",
        help="Input supplied to the program before reading from stdin",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort after this many instructions",
    )
    args = parser.parse_args(argv)

    width: Optional[int] = None
    if args.performance is not None:
        try:
            width, leftover = _split_performance(args.performance)
        except ValueError as exc:
            parser.error(f"argument -p/--performance: {exc}")
        if leftover is not None:
            if args.source is not None:
                parser.error(f"unrecognized arguments: {args.source}")
            args.source = leftover
    if args.source is None:
        kind = "expression" if args.eval else "path"
        print(f"Error: {kind} cannot be empty", file=sys.stderr)
        return 1

    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.eval:
        code = args.source
    else:
        try:
            code = _read_source(args.source)
        except (FileNotFoundError, OSError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    if not code:
        print("Error: No code to evaluate", file=sys.stderr)
        return 1

    if width is not None:
        logger.info("Performance mode (tape width %d)", width)
        interpreter = create_interpreter("bounded", code, width)
    else:
        logger.info("Dynamic mode")
        interpreter = create_interpreter("growable", code)
    interpreter.set_input(args.input)

    try:
        steps = execute(interpreter, stdin, stdout, max_steps=args.max_steps)
    except BrainfuckError as exc:
        stdout.flush()
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    logger.info("Executed %d instructions", steps)

    stdout.write("\n")
    if args.verbose:
        stdout.write(format_tape(interpreter) + "\n")
    stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
