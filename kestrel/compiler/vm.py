from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from kestrel import config
from kestrel.errors import (
    KestrelError, KestrelBytecodeError, KestrelStackOverflow, KestrelTypeError,
    KestrelUnboundSymbol, KestrelInvalidSymbol,
)
from kestrel.types.environment import Environment
from kestrel.types.objects import CompiledMethod, Primitive
from kestrel.types.printer import print_value
from kestrel.types.symbol import is_symbol
from kestrel.types.value import Value, NIL, is_truthy
from kestrel.evaluation import dispatch

from . import leb128
from .opcodes import Opcode
from .program import Program

log = logging.getLogger(__name__)


@dataclass
class Frame:
    """One activation. The frame owns stack[base:limit]:

        base .. base+argc-1      arguments, base is the receiver
        base+argc                selector (absent for the entry frame)
        sp_base .. limit-1       operand stack, max_stack slots
    """

    program: Program
    ip: int
    base: int
    argc: int
    sp_base: int
    limit: int
    method: Optional[CompiledMethod] = None
    # offset of the instruction being executed
    op_ip: int = 0

    def where(self) -> str:
        return self.program.describe_location(self.op_ip)


class VM:
    """One thread of execution: a frame stack plus a (possibly shared) global environment."""

    class RunSignal:
        NORMAL = 0
        RETURN = 1

    def __init__(self, env: Environment, depth_offset: int = 0, reentry: int = 0):
        self.env = env
        self.stack: List[Value] = []
        self.frames: List[Frame] = []
        # Frames already live in enclosing VMs (nested sends from primitives).
        self.depth_offset = depth_offset
        self.max_frames = config.get_max_frames()
        # Sends re-entered from primitives that are still running on the host stack.
        self.reentry = reentry
        self.max_reentry = config.get_max_reentry()
        self.trace = config.trace_enabled()
        self._read_uleb = leb128.read_uleb128
        self._read_sleb = leb128.read_sleb128
        self._result: Value = NIL
        # Opcode dispatch table
        self._dispatch: dict[int, Callable[[Frame], Tuple[int, Any | None]]] = {}
        self._init_dispatch()

    def _init_dispatch(self) -> None:
        d = self._dispatch
        d[Opcode.NOP] = self.op_nop
        d[Opcode.LOAD_CONSTANT] = self.op_load_constant
        d[Opcode.LOAD_GLOBAL] = self.op_load_global
        d[Opcode.DEFINE_GLOBAL] = self.op_define_global
        d[Opcode.LOAD_ARGUMENT] = self.op_load_argument
        d[Opcode.POP] = self.op_pop
        d[Opcode.DUP] = self.op_dup
        d[Opcode.JUMP] = self.op_jump
        d[Opcode.JUMP_IF_FALSE] = self.op_jump_if_false
        d[Opcode.RETURN] = self.op_return
        d[Opcode.CALL] = self.op_call

    @property
    def depth(self) -> int:
        """Total live frames, counting enclosing VMs."""
        return self.depth_offset + len(self.frames)

    # --- Stack helpers ---
    def push(self, v: Value) -> None:
        frame = self.frames[-1]
        if len(self.stack) >= frame.limit:
            raise KestrelStackOverflow(
                f"{frame.where()}: operand stack overflow in {frame.program.name} "
                f"(max_stack={frame.program.max_stack})"
            )
        self.stack.append(v)

    def pop(self) -> Value:
        frame = self.frames[-1]
        if len(self.stack) <= frame.sp_base:
            raise KestrelBytecodeError(f"{frame.where()}: operand stack underflow in {frame.program.name}")
        return self.stack.pop()

    def peek(self, n: int = 0) -> Value:
        return self.stack[-1 - n]

    def operand_depth(self) -> int:
        """Values currently on the active frame's operand stack."""
        if not self.frames:
            return 0
        return len(self.stack) - self.frames[-1].sp_base

    def _read_u(self, frame: Frame) -> int:
        value, frame.ip = self._read_uleb(frame.program.code, frame.ip)
        return value

    def _read_s(self, frame: Frame) -> int:
        value, frame.ip = self._read_sleb(frame.program.code, frame.ip)
        return value

    # --- Per-op handlers ---
    def op_nop(self, frame: Frame) -> Tuple[int, Any | None]:
        return VM.RunSignal.NORMAL, None

    def op_load_constant(self, frame: Frame) -> Tuple[int, Any | None]:
        idx = self._read_u(frame)
        consts = frame.program.constants
        if idx >= len(consts):
            raise KestrelBytecodeError(f"{frame.where()}: constant index {idx} out of range")
        self.push(consts[idx])
        return VM.RunSignal.NORMAL, None

    def op_load_global(self, frame: Frame) -> Tuple[int, Any | None]:
        name = self.pop()
        try:
            value = self.env.lookup(name)
        except (KestrelUnboundSymbol, KestrelInvalidSymbol):
            log.warning("%s: undefined identifier %s", frame.where(), print_value(name))
            value = NIL
        self.push(value)
        return VM.RunSignal.NORMAL, None

    def op_define_global(self, frame: Frame) -> Tuple[int, Any | None]:
        name = self.pop()
        value = self.pop()
        self.env.define(name, value)
        self.push(value)
        return VM.RunSignal.NORMAL, None

    def op_load_argument(self, frame: Frame) -> Tuple[int, Any | None]:
        idx = self._read_u(frame)
        if idx >= frame.argc:
            raise KestrelBytecodeError(f"{frame.where()}: argument index {idx} out of range")
        self.push(self.stack[frame.base + idx])
        return VM.RunSignal.NORMAL, None

    def op_pop(self, frame: Frame) -> Tuple[int, Any | None]:
        self.pop()
        return VM.RunSignal.NORMAL, None

    def op_dup(self, frame: Frame) -> Tuple[int, Any | None]:
        v = self.pop()
        self.push(v)
        self.push(v)
        return VM.RunSignal.NORMAL, None

    def _jump_to(self, frame: Frame, rel: int) -> None:
        target = frame.ip + rel
        if not 0 <= target < len(frame.program.code):
            raise KestrelBytecodeError(f"{frame.where()}: jump target {target} out of range")
        frame.ip = target

    def op_jump(self, frame: Frame) -> Tuple[int, Any | None]:
        rel = self._read_s(frame)
        self._jump_to(frame, rel)
        return VM.RunSignal.NORMAL, None

    def op_jump_if_false(self, frame: Frame) -> Tuple[int, Any | None]:
        rel = self._read_s(frame)
        if not is_truthy(self.pop()):
            self._jump_to(frame, rel)
        return VM.RunSignal.NORMAL, None

    def op_return(self, frame: Frame) -> Tuple[int, Any | None]:
        ret = self.pop()
        del self.stack[frame.base:]
        self.frames.pop()
        if not self.frames:
            return VM.RunSignal.RETURN, ret
        self.push(ret)
        return VM.RunSignal.NORMAL, None

    def op_call(self, frame: Frame) -> Tuple[int, Any | None]:
        argc = self._read_u(frame)
        if argc < 1:
            raise KestrelBytecodeError(f"{frame.where()}: CALL without a receiver")
        window = len(self.stack) - (argc + 1)
        if window < frame.sp_base:
            raise KestrelBytecodeError(f"{frame.where()}: CALL {argc} underflows the operand stack")
        selector = self.stack[-1]
        receiver = self.stack[window]

        handler = dispatch.lookup_handler(receiver, selector) if is_symbol(selector) else None
        if handler is None:
            dispatch.not_understood(receiver, selector, frame.where())
            return self._replace_window(window, NIL)
        if not dispatch.check_arity(handler, argc, frame.where()):
            return self._replace_window(window, NIL)

        target = handler.callable
        if isinstance(target, Primitive):
            args = self.stack[window:window + argc]
            result = target.fn(self, args)
            if not isinstance(result, Value):
                raise KestrelTypeError(f"Primitive {target.name} returned {result!r}, not a Value")
            return self._replace_window(window, result)

        self._push_frame(target, window, argc)
        return VM.RunSignal.NORMAL, None

    def _replace_window(self, window: int, result: Value) -> Tuple[int, Any | None]:
        del self.stack[window:]
        self.push(result)
        return VM.RunSignal.NORMAL, None

    def _push_frame(self, method: CompiledMethod, base: int, argc: int) -> None:
        """Open a frame directly over the argument window already on the stack."""
        if self.depth >= self.max_frames:
            raise KestrelStackOverflow(f"Call depth exceeded {self.max_frames} frames in {method.name}")
        program = method.program
        sp_base = base + argc + 1
        self.frames.append(
            Frame(program=program, ip=0, base=base, argc=argc, sp_base=sp_base,
                  limit=sp_base + program.max_stack, method=method)
        )

    # --- Execution ---
    def start(self, program: Program) -> None:
        """Reset this thread and open an entry frame for `program`."""
        if self.depth_offset + 1 > self.max_frames:
            raise KestrelStackOverflow(f"Call depth exceeded {self.max_frames} frames")
        self.stack.clear()
        self.frames.clear()
        self._result = NIL
        self.frames.append(
            Frame(program=program, ip=0, base=0, argc=0, sp_base=0, limit=program.max_stack)
        )

    @property
    def finished(self) -> bool:
        return not self.frames

    @property
    def result(self) -> Value:
        return self._result

    def step(self) -> bool:
        """Execute one instruction; return False once the entry frame has returned."""
        if not self.frames:
            return False
        frame = self.frames[-1]
        code = frame.program.code
        ip = frame.op_ip = frame.ip
        if ip >= len(code):
            raise KestrelBytecodeError(f"{frame.where()}: fell off the end of {frame.program.name}")
        op = code[ip]
        handler = self._dispatch.get(op)
        if handler is None:
            raise KestrelBytecodeError(f"{frame.where()}: unknown opcode 0x{op:02X}")
        if self.trace:
            log.debug("%s %-14s depth=%d frames=%d", frame.where(), Opcode(op).name,
                      self.operand_depth(), self.depth)
        frame.ip += 1
        signal, value = handler(frame)
        if signal == VM.RunSignal.RETURN:
            self._result = value
            return False
        return True

    def run(self, program: Program) -> Value:
        self.start(program)
        while self.step():
            pass
        return self._result

    def send(self, receiver: Value, selector: Value, args: list[Value]) -> Value:
        """Re-enter dispatch from a primitive; errors propagate to the enclosing execution."""
        return dispatch.invoke(self, receiver, selector, args)


def run_program(program: Program, env: Environment, depth_offset: int = 0, reentry: int = 0) -> Value:
    """Run without error conversion; KestrelError propagates."""
    return VM(env, depth_offset, reentry).run(program)


def execute_bytecode(program: Program, env: Optional[Environment] = None) -> Value:
    """Run `program` to completion and return its value, or nil if execution was aborted."""
    if env is None:
        from kestrel.builtin.primitives import default_environment
        env = default_environment()
    try:
        return run_program(program, env)
    except KestrelError as ex:
        log.error("Execution of %s aborted: %s", program.name, ex)
        return NIL
