from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, validator

from quickfuck.bf_interpreter import (
    DEFAULT_TAPE_WIDTH,
    ENGINE_ALIASES,
    BrainfuckError,
    ExecutionState,
    InputExhausted,
    StepLimitExceeded,
    create_interpreter,
    to_input_bytes,
)
from quickfuck.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

MAX_TAPE_WIDTH = 1 << 20


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "position": state.position,
        "command": state.command,
        "pointer": state.pointer,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "tape_size": state.tape_size,
        "loop_depth": state.loop_depth,
        "output": list(state.output),
        "output_text": state.output.decode("utf-8", errors="replace"),
        "code_length": state.code_length,
    }


def _calculate_total_steps(
    code: str,
    input_template: bytes,
    engine: str,
    width: int,
    cap: int = 10000,
) -> tuple[int, bool]:
    interpreter = create_interpreter(engine, code, width)
    total = 0
    try:
        for state in interpreter.trace(input_template, max_steps=cap):
            if state.step > total:
                total = state.step
    except StepLimitExceeded:
        return cap, True
    except BrainfuckError:
        # The dry run stops where the program faults or waits for input.
        return total, False
    return total, total >= cap


class SessionConfiguration(BaseModel):
    code: str = ""
    input: str = ""
    engine: str = "growable"
    width: int = Field(default=DEFAULT_TAPE_WIDTH, ge=1, le=MAX_TAPE_WIDTH)
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)

    @validator("engine")
    def validate_engine(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in ENGINE_ALIASES:
            raise ValueError("engine must be either 'growable' or 'bounded'")
        return ENGINE_ALIASES[normalized]


class SessionState(BaseModel):
    step: int
    position: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    tape_size: int
    loop_depth: int
    output: List[int]
    output_text: str
    code_length: int


class SessionPayload(BaseModel):
    session_id: str
    engine: str
    width: Optional[int]
    code: str
    state: SessionState
    history: List[SessionState]
    finished: bool
    waiting_for_input: bool
    error: Optional[str]
    pending_input: List[int]
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepResponse(SessionPayload):
    states: List[SessionState]


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class InputRequest(BaseModel):
    data: str


class BreakpointRequest(BaseModel):
    position: int = Field(ge=0)


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store if store is not None else SessionStore()
    app = FastAPI(title="quickfuck debugger API", version="0.1.0")

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _serialize_states(states: Sequence[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _payload_fields(record: SessionRecord) -> dict:
        session = record.session
        return dict(
            session_id=record.session_id,
            engine=session.interpreter.kind,
            width=session.width if session.interpreter.kind == "bounded" else None,
            code=session.code,
            state=SessionState(**_state_to_dict(session.current_state())),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            waiting_for_input=session.waiting_for_input,
            error=session.error,
            pending_input=list(session.interpreter.get_input()),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _build_payload(record: SessionRecord) -> SessionPayload:
        return SessionPayload(**_payload_fields(record))

    def _advance(
        record: SessionRecord,
        action: Callable[[VisualizerSession], Sequence[ExecutionState]],
    ) -> StepResponse:
        try:
            states = list(action(record.session))
        except (StepLimitExceeded, InputExhausted) as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc
        except BrainfuckError as exc:
            logger.warning("Session %s faulted: %s", record.session_id, exc)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc
        return StepResponse(states=_serialize_states(states), **_payload_fields(record))

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        input_bytes = to_input_bytes(payload.input)
        total_steps, total_steps_capped = _calculate_total_steps(
            payload.code,
            input_bytes,
            payload.engine,
            payload.width,
        )

        record = session_store.create_session(
            code=payload.code,
            input_template=input_bytes,
            engine=payload.engine,
            width=payload.width,
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        try:
            record = session_store.reset(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _get_record(session_id)
        return _advance(record, lambda session: session.step_forward(payload.count))

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        record = _get_record(session_id)
        session = record.session
        original_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            original_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None

        try:
            return _advance(record, lambda current: current.run_until_break(payload.limit))
        finally:
            if original_breakpoints is not None:
                session.breakpoints = original_breakpoints
                session.hit_breakpoint = None

    @app.post("/api/session/{session_id}/input", response_model=SessionPayload)
    def add_input(session_id: str, payload: InputRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.session.provide_input(payload.data)
        return _build_payload(record)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.session.add_breakpoint(payload.position)
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{position}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, position: int) -> SessionPayload:
        record = _get_record(session_id)
        removed = record.session.remove_breakpoint(position)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at position={position}",
            )
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        removed = session_store.remove(session_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
