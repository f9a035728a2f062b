import pytest

from evmcore.interpreter import (
    AdvancedExecutionState,
    build_op_table,
    execute,
    execute_code,
)
from evmcore.analysis import analyze
from evmcore.state import Message, Opcode, Revision, StatusCode


def _make_table():
    costs = [None] * 256
    traits = [(0, 0)] * 256

    def define(op, cost, req, change):
        costs[op] = cost
        traits[op] = (req, change)

    define(Opcode.STOP, 0, 0, 0)
    define(Opcode.ADD, 3, 2, -1)
    define(Opcode.SUB, 3, 2, -1)
    define(Opcode.NOT, 3, 1, 0)
    define(Opcode.POP, 2, 1, -1)
    define(Opcode.MSTORE, 3, 2, -2)
    define(Opcode.MSTORE8, 3, 2, -2)
    define(Opcode.JUMP, 8, 1, -1)
    define(Opcode.JUMPI, 10, 2, -2)
    define(Opcode.PC, 2, 0, 1)
    define(Opcode.GAS, 2, 0, 1)
    define(Opcode.JUMPDEST, 1, 0, 0)
    define(Opcode.RETURN, 0, 2, -2)
    define(Opcode.INVALID, 0, 0, 0)
    for n in range(1, 33):
        define(Opcode.PUSH1 + n - 1, 3, 0, 1)
    for n in range(1, 17):
        define(Opcode.DUP1 + n - 1, 3, n, 1)
        define(Opcode.SWAP1 + n - 1, 3, n + 1, 0)
    return build_op_table(costs, traits)


TABLE = _make_table()
RET_TOP = bytes.fromhex("60005260206000f3")


def run(code, gas=1_000_000):
    if isinstance(code, str):
        code = bytes.fromhex(code)
    return execute_code(None, Revision.PETERSBURG, Message(gas=gas), code, TABLE)


def test_add():
    res = run("6007600d0160005260206000f3", 25)
    assert res.status == StatusCode.SUCCESS
    assert 25 - res.gas_left == 24
    assert int.from_bytes(res.output, "big") == 20


def test_empty():
    res = run("", 0)
    assert res.status == StatusCode.SUCCESS
    assert res.gas_left == 0


def test_stack_underflow():
    assert run("60015060015050", 13).status == StatusCode.STACK_UNDERFLOW
    res = run("19")
    assert res.status == StatusCode.STACK_UNDERFLOW
    assert res.gas_left == 0


def test_gas():
    res = run("5a5a5a010160005360016000f3", 40)
    assert res.status == StatusCode.SUCCESS
    assert res.gas_left == 13
    assert res.output == bytes([38 + 36 + 34])


def test_inner_stop():
    res = run("600000" + "50", 3)
    assert res.status == StatusCode.SUCCESS
    assert res.gas_left == 0


def test_undefined_and_invalid():
    res = run("2a", 1)
    assert res.status == StatusCode.UNDEFINED_INSTRUCTION
    assert res.gas_left == 0
    assert run("fe", 1).status == StatusCode.INVALID_INSTRUCTION


def test_out_of_gas():
    res = run("6007600d0160005260206000f3", 23)
    assert res.status == StatusCode.OUT_OF_GAS
    assert res.gas_left == 0


def test_swapsn_jumpdest():
    code = "600456b35b6000" + RET_TOP.hex()
    res = run(code, 1000)
    assert res.status == StatusCode.SUCCESS
    assert 1000 - res.gas_left == 30


def test_swapsn_push():
    code = "600556b3605b6000" + RET_TOP.hex()
    assert run(code).status == StatusCode.BAD_JUMP_DESTINATION


def test_dup_stack_overflow():
    code = "6001" + "808182838485868788898a8b8c8d8e8f" + "8f" * (1024 - 17)
    assert run(code).status == StatusCode.SUCCESS
    assert run(code + "8f").status == StatusCode.STACK_OVERFLOW


@pytest.mark.parametrize("cond, expected", [(1, 2), (0, 1)])
def test_jumpi(cond, expected):
    # JUMPI to offset 10 when cond is set, otherwise fall through.
    code = f"60{cond:02x}600a57" + "6001" + RET_TOP.hex()[:-0 or None]
    code = bytes.fromhex(f"60{cond:02x}600c57") + bytes.fromhex("6001") + RET_TOP
    code += bytes.fromhex("5b6002") + RET_TOP
    res = run(code)
    assert res.status == StatusCode.SUCCESS
    assert int.from_bytes(res.output, "big") == expected


def test_pc_pushes_offset():
    res = run(bytes.fromhex("60005058") + RET_TOP)
    assert int.from_bytes(res.output, "big") == 3


def test_state_reset_and_reuse():
    state = AdvancedExecutionState(Message(gas=100), Revision.PETERSBURG, None, b"")
    state.stack.push(5)
    state.reset(Message(gas=50), Revision.PETERSBURG, None, b"")
    assert len(state.stack) == 0
    assert state.current_block_cost == 0
    res = execute(state, analyze(TABLE, bytes.fromhex("6001")))
    assert res.status == StatusCode.SUCCESS
    assert res.gas_left == 47


def test_build_op_table_rejects_bad_size():
    with pytest.raises(ValueError):
        build_op_table([None] * 10, [(0, 0)] * 10)