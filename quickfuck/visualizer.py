from __future__ import annotations

import argparse
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .bf_interpreter import (
    DEFAULT_TAPE_WIDTH,
    BrainfuckError,
    ExecutionState,
    InputExhausted,
    Interpreter,
    StepLimitExceeded,
    create_interpreter,
    to_input_bytes,
)


@dataclass
class VisualizerSession:
    code: str
    input_template: bytes = b""
    engine: str = "growable"
    width: int = DEFAULT_TAPE_WIDTH
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200

    def __post_init__(self) -> None:
        self.input_template = to_input_bytes(self.input_template)
        self.breakpoints: set[int] = set()
        self.history: List[ExecutionState] = []
        self.hit_breakpoint: Optional[int] = None
        self._init_interpreter()

    def _init_interpreter(self) -> None:
        self.interpreter: Interpreter = create_interpreter(self.engine, self.code, self.width)
        self.interpreter.set_input(self.input_template)
        self.steps = 0
        self.finished = self.interpreter.finished
        self.waiting_for_input = False
        self.error: Optional[str] = None
        self.last_state: ExecutionState = self.interpreter.snapshot(tape_window=self.tape_window)
        self._record_state(self.last_state)

    def restart(self) -> None:
        self._init_interpreter()

    def provide_input(self, data) -> None:
        self.interpreter.add_input(data)
        self.waiting_for_input = False

    def _record_state(self, state: ExecutionState) -> None:
        self.history.append(state)
        if len(self.history) > self.history_limit:
            self.history.pop(0)
        self.last_state = state

    def _advance(self) -> ExecutionState:
        if self.max_steps is not None and self.steps >= self.max_steps:
            self.finished = True
            raise StepLimitExceeded("Brainfuck program exceeded allowed step count")
        try:
            command = self.interpreter.step()
        except InputExhausted:
            self.waiting_for_input = True
            raise
        except BrainfuckError as exc:
            self.finished = True
            self.error = str(exc)
            raise
        self.steps += 1
        return self.interpreter.snapshot(command, self.steps, self.tape_window)

    def step_forward(self, count: int = 1) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        if count <= 0:
            return states
        self.hit_breakpoint = None
        for _ in range(count):
            if self.finished:
                break
            state = self._advance()
            self._record_state(state)
            states.append(state)
            if self.interpreter.finished:
                self.finished = True
                break
            if state.position in self.breakpoints:
                self.hit_breakpoint = state.position
                break
        return states

    def run_until_break(self, limit: Optional[int] = None) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        executed = 0
        while limit is None or executed < limit:
            step_states = self.step_forward(1)
            if not step_states:
                break
            states.extend(step_states)
            executed += 1
            if self.hit_breakpoint is not None:
                break
        return states

    def current_state(self) -> ExecutionState:
        return self.last_state

    def add_breakpoint(self, position: int) -> None:
        self.breakpoints.add(position)

    def remove_breakpoint(self, position: int) -> bool:
        if position in self.breakpoints:
            self.breakpoints.remove(position)
            return True
        return False

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)

    def is_finished(self) -> bool:
        return self.finished


def format_state(state: ExecutionState, code: str) -> str:
    lines: List[str] = []
    cmd_display = state.command if state.command is not None else "(init)"
    lines.append(
        f"step={state.step} pos={state.position}/{state.code_length} "
        f"command={cmd_display!r} pointer={state.pointer} loops={state.loop_depth}"
    )
    if state.output:
        lines.append(f"output={state.output!r}")
    tape_parts: List[str] = []
    for idx, value in enumerate(state.tape):
        absolute = state.tape_start + idx
        cell_repr = f"{absolute}:{value:03}"
        if absolute == state.pointer:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append(f"tape({state.tape_size})=" + " ".join(tape_parts))
    code_window = _format_code_window(code, state.position)
    lines.append(f"code={code_window}")
    return "\n".join(lines)


def _format_code_window(code: str, position: int, window: int = 16) -> str:
    if not code:
        return "(empty)"
    start = max(0, position - window)
    end = min(len(code), position + window + 1)
    pieces: List[str] = []
    for index in range(start, end):
        ch = code[index]
        if index == position:
            pieces.append(f"[{ch}]")
        else:
            pieces.append(ch)
    if position >= len(code):
        pieces.append("[END]")
    return "".join(pieces)


def _step_guarded(session: VisualizerSession, count: Optional[int], run: bool) -> Sequence[ExecutionState]:
    try:
        if run:
            return session.run_until_break(count)
        return session.step_forward(count or 1)
    except StepLimitExceeded:
        print("Step limit reached.", file=sys.stderr)
    except InputExhausted:
        print("Input exhausted; supply more with 'input TEXT'.", file=sys.stderr)
    except BrainfuckError as exc:
        print(f"Error: {exc}", file=sys.stderr)
    return []


def run_repl(session: VisualizerSession) -> None:
    print("quickfuck debugger (type 'help' for commands)")
    _print_state(session.current_state(), session)
    while True:
        try:
            line = input("(qf) ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        parts = shlex.split(line)
        command = parts[0].lower()
        args = parts[1:]
        try:
            if command in {"n", "next"}:
                count = max(1, int(args[0])) if args else 1
                states = _step_guarded(session, count, run=False)
                if states:
                    _print_state(states[-1], session)
                elif session.is_finished():
                    print("Program has finished.")
            elif command in {"r", "run"}:
                limit = int(args[0]) if args else None
                states = _step_guarded(session, limit, run=True)
                if states:
                    _print_state(states[-1], session)
                    if session.hit_breakpoint is not None:
                        print(f"Hit breakpoint at {session.hit_breakpoint}.")
                        session.hit_breakpoint = None
                elif session.is_finished():
                    print("Program has finished.")
            elif command == "state":
                _print_state(session.current_state(), session)
            elif command == "history":
                count = int(args[0]) if args else 10
                for state in session.history[-count:]:
                    print("-" * 40)
                    print(format_state(state, session.code))
            elif command == "break":
                if not args:
                    print("Specify a source position.")
                    continue
                position = int(args[0])
                session.add_breakpoint(position)
                print(f"Breakpoint set at {position}.")
            elif command == "breaks":
                points = session.list_breakpoints()
                if not points:
                    print("No breakpoints.")
                else:
                    print("Breakpoints:", ", ".join(map(str, points)))
            elif command == "clear":
                if not args:
                    session.clear_breakpoints()
                    print("All breakpoints cleared.")
                else:
                    position = int(args[0])
                    if session.remove_breakpoint(position):
                        print(f"Breakpoint {position} removed.")
                    else:
                        print(f"No breakpoint at {position}.")
            elif command == "input":
                session.provide_input(" ".join(args))
                print(f"Input buffer: {session.interpreter.get_input()!r}")
            elif command == "restart":
                session.restart()
                print("Session restarted.")
                _print_state(session.current_state(), session)
            elif command in {"quit", "exit"}:
                break
            elif command == "help":
                _print_help()
            else:
                print("Unknown command, see 'help'.")
        except ValueError:
            print("Invalid number.", file=sys.stderr)


def _print_state(state: ExecutionState, session: VisualizerSession) -> None:
    print("-" * 40)
    print(format_state(state, session.code))


def _print_help() -> None:
    print(
        "Commands:\n"
        "  next [N]    : execute N instructions (default 1)\n"
        "  run [N]     : run until a breakpoint, the end, or N instructions\n"
        "  state       : show the current state\n"
        "  history [N] : show the last N states\n"
        "  break POS   : set a breakpoint at source position POS\n"
        "  breaks      : list breakpoints\n"
        "  clear [POS] : remove a breakpoint (all when POS is omitted)\n"
        "  input TEXT  : append TEXT to the input buffer\n"
        "  restart     : reset the session\n"
        "  quit/exit   : leave the debugger\n"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="quickfuck step debugger")
    parser.add_argument("source", help="Path to a Brainfuck source file")
    parser.add_argument("--input", default="", help="Initial input buffer contents")
    parser.add_argument(
        "--engine",
        choices=["growable", "bounded"],
        default="growable",
        help="Tape engine (default: growable)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=DEFAULT_TAPE_WIDTH,
        help="Tape width for the bounded engine (default: 256)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=5_000_000,
        help="Step limit (default: 5,000,000)",
    )
    parser.add_argument("--tape-window", type=int, default=10, help="Cells shown around the pointer")
    parser.add_argument("--history-limit", type=int, default=200, help="Number of states kept in history")
    args = parser.parse_args(argv)

    try:
        source_text = Path(args.source).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot open file: {exc}", file=sys.stderr)
        return 1

    try:
        session = VisualizerSession(
            source_text,
            input_template=to_input_bytes(args.input),
            engine=args.engine,
            width=args.width,
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    run_repl(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
