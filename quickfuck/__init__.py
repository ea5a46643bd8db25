from .bf_interpreter import (
    BoundedInterpreter,
    BrainfuckError,
    ExecutionState,
    GrowableInterpreter,
    InputExhausted,
    Interpreter,
    OutOfBounds,
    StepLimitExceeded,
    UnbalancedLoop,
    create_interpreter,
)
from .visualizer import VisualizerSession

__all__ = [
    "BoundedInterpreter",
    "BrainfuckError",
    "ExecutionState",
    "GrowableInterpreter",
    "InputExhausted",
    "Interpreter",
    "OutOfBounds",
    "StepLimitExceeded",
    "UnbalancedLoop",
    "VisualizerSession",
    "create_interpreter",
]
