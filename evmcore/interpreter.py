"""The block-based interpreter executing analysed code."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, Sequence

from evmcore import arith, environment
from evmcore.analysis import (
    AdvancedCodeAnalysis,
    OpTableEntry,
    analyze,
    find_jumpdest,
)
from evmcore.stack import STACK_LIMIT, Stack
from evmcore.state import (
    ExecutionError,
    ExecutionState,
    Host,
    Message,
    Opcode,
    Revision,
    StatusCode,
    StopToken,
)

_INT_MAX = 2**31 - 1
_UINT64_MASK = 2**64 - 1


class AdvancedExecutionState(ExecutionState):
    """Execution state with the operand stack and current block cost."""

    def reset(
        self, message: Message, revision: Revision, host: Optional[Host], code: bytes
    ) -> None:
        """Reinitialise the state for a new execution."""
        super().reset(message, revision, host, code)
        self.stack = Stack()
        self.current_block_cost = 0

    def exit(self, status: StatusCode) -> None:
        """Terminate execution with ``status``."""
        self.status = status
        return None


@dataclass(frozen=True)
class Result:
    """The outcome of an execution."""

    status: StatusCode
    gas_left: int
    gas_refund: int
    output: bytes


def _generic(core: Callable, arity: int, state: AdvancedExecutionState, pc: int) -> Optional[int]:
    try:
        if arity == 0:
            outcome = core()
        elif arity == 1:
            outcome = core(state.stack)
        else:
            outcome = core(state.stack, state)
    except ExecutionError as error:
        return state.exit(error.status)
    if isinstance(outcome, StopToken):
        return state.exit(outcome.status)
    return pc + 1


def _pop(stack: Stack) -> None:
    stack.pop()


def _opx_beginblock(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    block = state.analysis.instrs[pc].arg
    state.gas_left -= block.gas_cost
    if state.gas_left < 0:
        return state.exit(StatusCode.OUT_OF_GAS)
    if len(state.stack) < block.stack_req:
        return state.exit(StatusCode.STACK_UNDERFLOW)
    if len(state.stack) + block.stack_max_growth > STACK_LIMIT:
        return state.exit(StatusCode.STACK_OVERFLOW)
    state.current_block_cost = block.gas_cost
    return pc + 1


def _op_jump(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    dst = state.stack.pop()
    if dst > _INT_MAX:
        return state.exit(StatusCode.BAD_JUMP_DESTINATION)
    target = find_jumpdest(state.analysis, dst)
    if target < 0:
        return state.exit(StatusCode.BAD_JUMP_DESTINATION)
    return target


def _op_jumpi(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    if state.stack[1] != 0:
        target = _op_jump(state, pc)
        state.stack.pop()
        return target
    state.stack.pop()
    state.stack.pop()
    return _opx_beginblock(state, pc)


def _op_pc(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    state.stack.push(state.analysis.instrs[pc].arg)
    return pc + 1


def _op_gas(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    correction = state.current_block_cost - state.analysis.instrs[pc].arg
    state.stack.push((state.gas_left + correction) & _UINT64_MASK)
    return pc + 1


def _op_push(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    state.stack.push(state.analysis.instrs[pc].arg)
    return pc + 1


def _op_undefined(state: AdvancedExecutionState, pc: int) -> Optional[int]:
    return state.exit(StatusCode.UNDEFINED_INSTRUCTION)


def _implementations() -> dict[int, Callable]:
    table: dict[int, Callable] = {}

    def bind(opcode: int, core: Callable, arity: int) -> None:
        table[opcode] = partial(_generic, core, arity)

    for name in (
        "ADD MUL SUB DIV SDIV MOD SMOD ADDMOD MULMOD SIGNEXTEND LT GT SLT SGT EQ "
        "ISZERO BYTE SHL SHR SAR PUSH0"
    ).split():
        bind(Opcode[name], getattr(arith, name.lower()), 1)
    for name in ("AND", "OR", "XOR", "NOT"):
        bind(Opcode[name], getattr(arith, name.lower() + "_"), 1)
    bind(Opcode.EXP, arith.exp, 2)
    bind(Opcode.POP, _pop, 1)
    for n in range(1, 17):
        bind(Opcode[f"DUP{n}"], partial(arith.dup, n=n), 1)
        bind(Opcode[f"SWAP{n}"], partial(arith.swap, n=n), 1)

    for name in (
        "KECCAK256 ADDRESS BALANCE ORIGIN CALLER CALLVALUE CALLDATALOAD CALLDATASIZE "
        "CALLDATACOPY CODESIZE CODECOPY GASPRICE BASEFEE EXTCODESIZE EXTCODECOPY "
        "RETURNDATASIZE RETURNDATACOPY EXTCODEHASH BLOCKHASH COINBASE TIMESTAMP NUMBER "
        "PREVRANDAO GASLIMIT CHAINID SELFBALANCE MLOAD MSTORE MSTORE8 MSIZE REVERT "
        "SELFDESTRUCT"
    ).split():
        bind(Opcode[name], getattr(environment, name.lower()), 2)
    bind(Opcode.RETURN, environment.return_, 2)
    for n in range(5):
        bind(Opcode[f"LOG{n}"], partial(environment.log, num_topics=n), 2)
    bind(Opcode.STOP, environment.stop, 0)
    bind(Opcode.INVALID, environment.invalid, 0)

    table[Opcode.JUMP] = _op_jump
    table[Opcode.JUMPI] = _op_jumpi
    table[Opcode.PC] = _op_pc
    table[Opcode.GAS] = _op_gas
    table[Opcode.JUMPDEST] = _opx_beginblock
    for n in range(1, 33):
        table[Opcode[f"PUSH{n}"]] = _op_push
    return table


_IMPLEMENTATIONS = _implementations()


def build_op_table(
    gas_costs: Sequence[Optional[int]], traits: Sequence[tuple[int, int]]
) -> list[OpTableEntry]:
    """Build the 256-entry opcode table for one revision.

    ``gas_costs[i]`` is the base cost of opcode ``i`` or ``None`` when it is
    undefined; ``traits[i]`` is its (stack height required, stack height
    change). Opcodes without an implementation are treated as undefined.
    """
    if len(gas_costs) != 256 or len(traits) != 256:
        raise ValueError("gas_costs and traits must have 256 entries")
    table = []
    for opcode, (cost, (stack_req, stack_change)) in enumerate(zip(gas_costs, traits)):
        fn = _IMPLEMENTATIONS.get(opcode)
        if cost is None or fn is None:
            table.append(OpTableEntry(_op_undefined))
        else:
            table.append(OpTableEntry(fn, cost, stack_req, stack_change))
    return table


def execute(state: AdvancedExecutionState, analysis: AdvancedCodeAnalysis) -> Result:
    """Run already analysed code on ``state``."""
    state.analysis = analysis
    instrs = analysis.instrs
    pc: Optional[int] = 0
    while pc is not None:
        pc = instrs[pc].fn(state, pc)

    status = state.status
    gas_left = state.gas_left if status in (StatusCode.SUCCESS, StatusCode.REVERT) else 0
    gas_refund = state.gas_refund if status == StatusCode.SUCCESS else 0
    output = (
        state.memory.read(state.output_offset, state.output_size) if state.output_size else b""
    )
    return Result(status, gas_left, gas_refund, output)


def execute_code(
    host: Optional[Host],
    revision: Revision,
    message: Message,
    code: bytes,
    op_table: Sequence[OpTableEntry],
) -> Result:
    """Analyse and execute ``code`` for ``message``."""
    analysis = analyze(op_table, code)
    state = AdvancedExecutionState(message, revision, host, code)
    return execute(state, analysis)