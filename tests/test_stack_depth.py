import pytest

from kestrel.errors import KestrelBytecodeError
from kestrel.compiler import leb128
from kestrel.compiler.chunk import Chunk
from kestrel.compiler.compiler import compile_module
from kestrel.compiler.disasm import disassemble
from kestrel.compiler.opcodes import Opcode
from kestrel.compiler.stack_depth import max_stack_depth, decode
from kestrel.reader.parser import parse
from kestrel.types.symbol import symbol
from kestrel.types.value import make_int


def _code(*parts) -> bytes:
    out = bytearray()
    for p in parts:
        if isinstance(p, int):
            out.append(p)
        else:
            out.extend(p)
    return bytes(out)


def test_straight_line_depth():
    chunk = Chunk()
    chunk.emit_constant(make_int(1))
    chunk.emit_constant(make_int(2))
    chunk.emit_constant(make_int(3))
    chunk.emit_constant(symbol("+"))
    chunk.emit_call(2)
    chunk.emit_constant(symbol("+"))
    chunk.emit_call(2)
    chunk.emit_op(Opcode.RETURN)
    assert chunk.finish().max_stack == 4


def test_nested_sends_compile_to_expected_depth():
    (form,) = parse("(+ 1 (* 2 (- 3 4)))")
    # 1, 2, 3, 4, '-' are live together
    assert compile_module(form).max_stack == 5


def test_branches_take_the_deeper_path():
    (form,) = parse("(if true (+ 1 (+ 2 3)) 0)")
    assert compile_module(form).max_stack == 4


def test_underflow_is_rejected():
    with pytest.raises(KestrelBytecodeError):
        max_stack_depth(_code(Opcode.POP, Opcode.RETURN))
    with pytest.raises(KestrelBytecodeError):
        max_stack_depth(_code(Opcode.LOAD_CONSTANT, 0, Opcode.CALL, 1, Opcode.RETURN))


def test_inconsistent_join_is_rejected():
    # One path reaches the join with an extra value on the stack
    chunk = Chunk()
    chunk.emit_constant(make_int(0))
    site = chunk.emit_jump(Opcode.JUMP_IF_FALSE)
    chunk.emit_constant(make_int(1))
    chunk.patch_jump(site)
    chunk.emit_constant(make_int(2))
    chunk.emit_op(Opcode.RETURN)
    with pytest.raises(KestrelBytecodeError):
        chunk.finish()


def test_bad_streams_are_rejected():
    with pytest.raises(KestrelBytecodeError):
        max_stack_depth(_code(0x7E))
    with pytest.raises(KestrelBytecodeError):
        max_stack_depth(_code(Opcode.NOP))
    with pytest.raises(KestrelBytecodeError):
        max_stack_depth(_code(Opcode.JUMP, leb128.encode_sleb128_padded(100)))
    with pytest.raises(KestrelBytecodeError):
        max_stack_depth(_code(Opcode.LOAD_CONSTANT, 3, Opcode.RETURN), constant_count=1)


def test_decode_and_disassemble():
    (form,) = parse("(if (< 1 2) 'yes 'no)")
    program = compile_module(form)
    ops = [ins.op for ins in decode(program.code)]
    assert ops[-1] == Opcode.RETURN
    assert Opcode.JUMP_IF_FALSE in ops and Opcode.CALL in ops
    listing = disassemble(program)
    assert "JUMP_IF_FALSE" in listing
    assert "(yes)" in listing
    assert "max_stack=3" in listing
