from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

DEFAULT_TAPE_WIDTH = 256
CELL_MODULUS = 256

InputData = Union[str, bytes, bytearray]


class BrainfuckError(RuntimeError):
    """Base class for every failure raised while executing a program."""


class InputExhausted(BrainfuckError):
    """Raised when ',' executes with nothing left in the input buffer."""


class UnbalancedLoop(BrainfuckError):
    """Raised when ']' executes with an empty loop index."""


class OutOfBounds(BrainfuckError):
    """Raised when the pointer would leave a fixed-width tape."""


class StepLimitExceeded(BrainfuckError):
    """Raised when Brainfuck execution exceeds the configured step budget."""


@dataclass
class ExecutionState:
    step: int
    position: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: bytes
    code_length: int
    loop_depth: int
    tape_size: int


def to_input_bytes(data: Optional[InputData]) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class Interpreter:
    """Shared dispatch loop for the tape engines.

    Subclasses own the tape representation and decide what pointer movement
    means at the edges; everything else (loop index, I/O buffers, cursor) lives
    here so the instruction semantics exist exactly once.
    """

    kind = "abstract"

    def __init__(self, code: str = "") -> None:
        self.code = code
        self.input_buffer = bytearray()
        self.reset()

    # -- lifecycle -----------------------------------------------------------

    def load(self, code: str) -> None:
        self.code = code
        self.reset()

    def reset(self) -> None:
        """Clear tape, cursor, loop index and output. Staged input is kept."""
        self.tape = self._new_tape()
        self.position = 0
        self.pointer = 0
        self.loops: List[int] = []
        self.output_buffer = bytearray()

    @property
    def finished(self) -> bool:
        return self.position >= len(self.code)

    @property
    def loop_depth(self) -> int:
        return len(self.loops)

    # -- execution -----------------------------------------------------------

    def step(self) -> Optional[str]:
        """Execute the instruction under the cursor and advance past it.

        Returns the executed character, or ``None`` when the cursor is already
        past the end of the source. A failing instruction leaves the cursor
        where it was so the step can be retried.
        """
        if self.finished:
            return None
        command = self.code[self.position]
        next_position = self.position + 1

        if command == "+":
            self.tape[self.pointer] = (self.tape[self.pointer] + 1) % CELL_MODULUS
        elif command == "-":
            self.tape[self.pointer] = (self.tape[self.pointer] - 1) % CELL_MODULUS
        elif command == ">":
            self._move_right()
        elif command == "<":
            self._move_left()
        elif command == "[":
            self.loops.append(self.position)
        elif command == "]":
            if not self.loops:
                raise UnbalancedLoop(
                    "Unmatched ']' at position {}".format(self.position)
                )
            if self.tape[self.pointer] == 0:
                self.loops.pop()
            else:
                next_position = self.loops[-1] + 1
        elif command == ".":
            self.output_buffer.append(self.tape[self.pointer])
        elif command == ",":
            if not self.input_buffer:
                raise InputExhausted(
                    "Input is empty, nothing more to read at position {}".format(
                        self.position
                    )
                )
            self.tape[self.pointer] = self.input_buffer.pop(0)

        self.position = next_position
        return command

    def interpret(self, input_data: Optional[InputData] = None) -> bytes:
        self.set_input(input_data)
        self.reset()
        while not self.finished:
            self.step()
        return self.get_output()

    def trace(
        self,
        input_data: Optional[InputData] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        self.set_input(input_data)
        self.reset()
        steps = 0

        while not self.finished:
            if max_steps is not None and steps >= max_steps:
                raise StepLimitExceeded("Brainfuck program exceeded allowed step count")

            command = self.step()
            steps += 1
            yield self.snapshot(command, steps, tape_window)

        # Emit final snapshot indicating completion
        yield self.snapshot(None, steps, tape_window)

    def snapshot(
        self,
        command: Optional[str] = None,
        step: int = 0,
        tape_window: int = 10,
    ) -> ExecutionState:
        start = max(0, self.pointer - tape_window)
        end = min(self.size, self.pointer + tape_window + 1)
        return ExecutionState(
            step=step,
            position=self.position,
            command=command,
            pointer=self.pointer,
            tape_start=start,
            tape=list(self.tape[start:end]),
            output=self.get_output(),
            code_length=len(self.code),
            loop_depth=self.loop_depth,
            tape_size=self.size,
        )

    # -- I/O buffers ---------------------------------------------------------

    def get_output(self) -> bytes:
        return bytes(self.output_buffer)

    @property
    def output_text(self) -> str:
        return self.output_buffer.decode("utf-8", errors="replace")

    def clear_output(self) -> None:
        self.output_buffer.clear()

    def get_input(self) -> bytes:
        return bytes(self.input_buffer)

    def set_input(self, data: Optional[InputData]) -> None:
        self.input_buffer = bytearray(to_input_bytes(data))

    def add_input(self, data: InputData) -> None:
        self.input_buffer.extend(to_input_bytes(data))

    # -- tape access ---------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self.tape)

    def get_tape(self) -> List[int]:
        return list(self.tape)

    def get_value(self, index: Optional[int] = None) -> int:
        return self.tape[self._cell_index(index)]

    def set_value(self, value: int, index: Optional[int] = None) -> None:
        self.tape[self._cell_index(index)] = value % CELL_MODULUS

    def _cell_index(self, index: Optional[int]) -> int:
        if index is None:
            return self.pointer
        if not 0 <= index < self.size:
            raise IndexError(
                "Cell {} is outside the tape (size {})".format(index, self.size)
            )
        return index

    # -- tape policy hooks ---------------------------------------------------

    def _new_tape(self):
        raise NotImplementedError

    def _move_right(self) -> None:
        raise NotImplementedError

    def _move_left(self) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return "{}(position={}, pointer={}, size={})".format(
            type(self).__name__, self.position, self.pointer, self.size
        )


class BoundedInterpreter(Interpreter):
    """Fixed-width tape; leaving ``[0, width)`` raises :class:`OutOfBounds`."""

    kind = "bounded"

    def __init__(self, code: str = "", width: int = DEFAULT_TAPE_WIDTH) -> None:
        if isinstance(width, bool) or not isinstance(width, int) or width < 1:
            raise ValueError("Tape width must be a positive integer, got {!r}".format(width))
        self.width = width
        super().__init__(code)

    def _new_tape(self) -> bytearray:
        return bytearray(self.width)

    def _move_right(self) -> None:
        if self.pointer + 1 >= self.width:
            raise OutOfBounds(
                "Pointer moved beyond the tape width {} at position {}".format(
                    self.width, self.position
                )
            )
        self.pointer += 1

    def _move_left(self) -> None:
        if self.pointer == 0:
            raise OutOfBounds(
                "Pointer moved before start of tape at position {}".format(self.position)
            )
        self.pointer -= 1


class GrowableInterpreter(Interpreter):
    """Tape that starts with one cell and grows one cell per rightward crossing."""

    kind = "growable"

    def _new_tape(self) -> List[int]:
        return [0]

    def _move_right(self) -> None:
        if self.pointer == len(self.tape) - 1:
            self.tape.append(0)
        self.pointer += 1

    def _move_left(self) -> None:
        # No negative cells
        if self.pointer > 0:
            self.pointer -= 1


ENGINE_ALIASES = {
    "growable": "growable",
    "dynamic": "growable",
    "bounded": "bounded",
    "performance": "bounded",
}


def create_interpreter(
    kind: str = "growable",
    code: str = "",
    width: Optional[int] = None,
) -> Interpreter:
    try:
        engine = ENGINE_ALIASES[kind.lower()]
    except KeyError as exc:
        raise ValueError("Unknown engine: {!r}".format(kind)) from exc
    if engine == "bounded":
        return BoundedInterpreter(code, DEFAULT_TAPE_WIDTH if width is None else width)
    return GrowableInterpreter(code)


__all__ = [
    "BoundedInterpreter",
    "BrainfuckError",
    "DEFAULT_TAPE_WIDTH",
    "ENGINE_ALIASES",
    "ExecutionState",
    "GrowableInterpreter",
    "InputExhausted",
    "Interpreter",
    "OutOfBounds",
    "StepLimitExceeded",
    "UnbalancedLoop",
    "create_interpreter",
    "to_input_bytes",
]
