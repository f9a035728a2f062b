"""Code analysis splitting bytecode into basic blocks of instructions."""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from evmcore.state import Opcode

_UINT32_MAX = 2**32 - 1
_INT16_MAX = 2**15 - 1

#: The intrinsic instruction opening every basic block; an alias of JUMPDEST.
OPX_BEGINBLOCK = Opcode.JUMPDEST

_TERMINATORS = frozenset(
    {Opcode.JUMP, Opcode.STOP, Opcode.RETURN, Opcode.REVERT, Opcode.SELFDESTRUCT}
)
_GAS_CORRECTED = frozenset(
    {
        Opcode.GAS, Opcode.CALL, Opcode.CALLCODE, Opcode.DELEGATECALL,
        Opcode.STATICCALL, Opcode.CREATE, Opcode.CREATE2, Opcode.SSTORE,
    }
)


@dataclass(frozen=True)
class BlockInfo:
    """Compressed requirements of one basic block."""

    gas_cost: int = 0
    stack_req: int = 0
    stack_max_growth: int = 0


@dataclass(frozen=True)
class OpTableEntry:
    """The implementation and static properties of one opcode."""

    fn: Callable[..., Optional[int]]
    gas_cost: int = 0
    stack_req: int = 0
    stack_change: int = 0


@dataclass
class Instruction:
    """An analysed instruction: its implementation and its argument."""

    fn: Callable[..., Optional[int]]
    arg: Any = None


@dataclass
class AdvancedCodeAnalysis:
    """The result of code analysis."""

    instrs: list[Instruction] = field(default_factory=list)
    push_values: list[int] = field(default_factory=list)
    jumpdest_offsets: list[int] = field(default_factory=list)
    jumpdest_targets: list[int] = field(default_factory=list)


@dataclass
class _BlockAnalysis:
    begin_block_index: int
    gas_cost: int = 0
    stack_req: int = 0
    stack_max_growth: int = 0
    stack_change: int = 0

    def close(self) -> BlockInfo:
        return BlockInfo(
            min(self.gas_cost, _UINT32_MAX),
            min(self.stack_req, _INT16_MAX),
            min(self.stack_max_growth, _INT16_MAX),
        )


def analyze(op_table: Sequence[OpTableEntry], code: bytes) -> AdvancedCodeAnalysis:
    """Translate ``code`` into the instruction list using ``op_table``."""
    analysis = AdvancedCodeAnalysis()
    instrs = analysis.instrs
    instrs.append(Instruction(op_table[OPX_BEGINBLOCK].fn))
    block = _BlockAnalysis(0)

    code_end = len(code)
    pos = 0
    while pos != code_end:
        opcode = code[pos]
        pos += 1
        entry = op_table[opcode]

        if opcode == Opcode.JUMPDEST:
            instrs[block.begin_block_index].arg = block.close()
            block = _BlockAnalysis(len(instrs))
            analysis.jumpdest_offsets.append(pos - 1)
            analysis.jumpdest_targets.append(len(instrs))

        instr = Instruction(entry.fn)
        instrs.append(instr)

        block.stack_req = max(block.stack_req, entry.stack_req - block.stack_change)
        block.stack_change += entry.stack_change
        block.stack_max_growth = max(block.stack_max_growth, block.stack_change)
        block.gas_cost += entry.gas_cost

        if opcode in _TERMINATORS:
            while pos != code_end and code[pos] != Opcode.JUMPDEST:
                if Opcode.PUSH1 <= code[pos] <= Opcode.PUSH32:
                    pos = min(pos + code[pos] - Opcode.PUSH1 + 2, code_end)
                else:
                    pos += 1
        elif opcode == Opcode.JUMPI:
            instrs[block.begin_block_index].arg = block.close()
            block = _BlockAnalysis(len(instrs) - 1)
        elif Opcode.PUSH1 <= opcode <= Opcode.PUSH32:
            push_size = opcode - Opcode.PUSH1 + 1
            data = code[pos:pos + push_size]
            pos = min(pos + push_size, code_end)
            value = int.from_bytes(data.ljust(push_size, b"\x00"), "big")
            if opcode > Opcode.PUSH8:
                analysis.push_values.append(value)
            instr.arg = value
        elif opcode in _GAS_CORRECTED:
            instr.arg = block.gas_cost
        elif opcode == Opcode.PC:
            instr.arg = pos - 1

    instrs[block.begin_block_index].arg = block.close()
    instrs.append(Instruction(op_table[Opcode.STOP].fn))
    return analysis


def find_jumpdest(analysis: AdvancedCodeAnalysis, offset: int) -> int:
    """Return the instruction index of the JUMPDEST at ``offset``, or -1."""
    offsets = analysis.jumpdest_offsets
    i = bisect_left(offsets, offset)
    if i != len(offsets) and offsets[i] == offset:
        return analysis.jumpdest_targets[i]
    return -1