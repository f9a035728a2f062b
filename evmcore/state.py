"""Execution state, host interface and memory of the virtual machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Protocol, Sequence

#: The largest memory offset or size that instructions accept.
MAX_BUFFER_SIZE = 2**32 - 1

#: The size of the EVM word in bytes.
WORD_SIZE = 32

#: The message flag marking a static (read-only) call.
STATIC_FLAG = 1


class Revision(IntEnum):
    """Protocol revisions, in chronological order."""

    FRONTIER = 0
    HOMESTEAD = 1
    TANGERINE_WHISTLE = 2
    SPURIOUS_DRAGON = 3
    BYZANTIUM = 4
    CONSTANTINOPLE = 5
    PETERSBURG = 6
    ISTANBUL = 7
    BERLIN = 8
    LONDON = 9
    PARIS = 10
    SHANGHAI = 11
    CANCUN = 12
    LATEST_STABLE = 10
    MAX = 12


class StatusCode(IntEnum):
    """Outcome of an execution."""

    SUCCESS = 0
    FAILURE = 1
    REVERT = 2
    OUT_OF_GAS = 3
    INVALID_INSTRUCTION = 4
    UNDEFINED_INSTRUCTION = 5
    STACK_OVERFLOW = 6
    STACK_UNDERFLOW = 7
    BAD_JUMP_DESTINATION = 8
    INVALID_MEMORY_ACCESS = 9
    CALL_DEPTH_EXCEEDED = 10
    STATIC_MODE_VIOLATION = 11
    PRECOMPILE_FAILURE = 12
    CONTRACT_VALIDATION_FAILURE = 13
    ARGUMENT_OUT_OF_RANGE = 14
    INTERNAL_ERROR = -1
    REJECTED = -2
    OUT_OF_MEMORY = -3


class AccessStatus(IntEnum):
    """Warm/cold status of an account access."""

    COLD = 0
    WARM = 1


def _opcode_members() -> list[tuple[str, int]]:
    named = {
        "STOP": 0x00, "ADD": 0x01, "MUL": 0x02, "SUB": 0x03, "DIV": 0x04,
        "SDIV": 0x05, "MOD": 0x06, "SMOD": 0x07, "ADDMOD": 0x08, "MULMOD": 0x09,
        "EXP": 0x0A, "SIGNEXTEND": 0x0B,
        "LT": 0x10, "GT": 0x11, "SLT": 0x12, "SGT": 0x13, "EQ": 0x14,
        "ISZERO": 0x15, "AND": 0x16, "OR": 0x17, "XOR": 0x18, "NOT": 0x19,
        "BYTE": 0x1A, "SHL": 0x1B, "SHR": 0x1C, "SAR": 0x1D,
        "KECCAK256": 0x20,
        "ADDRESS": 0x30, "BALANCE": 0x31, "ORIGIN": 0x32, "CALLER": 0x33,
        "CALLVALUE": 0x34, "CALLDATALOAD": 0x35, "CALLDATASIZE": 0x36,
        "CALLDATACOPY": 0x37, "CODESIZE": 0x38, "CODECOPY": 0x39,
        "GASPRICE": 0x3A, "EXTCODESIZE": 0x3B, "EXTCODECOPY": 0x3C,
        "RETURNDATASIZE": 0x3D, "RETURNDATACOPY": 0x3E, "EXTCODEHASH": 0x3F,
        "BLOCKHASH": 0x40, "COINBASE": 0x41, "TIMESTAMP": 0x42, "NUMBER": 0x43,
        "PREVRANDAO": 0x44, "GASLIMIT": 0x45, "CHAINID": 0x46,
        "SELFBALANCE": 0x47, "BASEFEE": 0x48,
        "POP": 0x50, "MLOAD": 0x51, "MSTORE": 0x52, "MSTORE8": 0x53,
        "SLOAD": 0x54, "SSTORE": 0x55, "JUMP": 0x56, "JUMPI": 0x57, "PC": 0x58,
        "MSIZE": 0x59, "GAS": 0x5A, "JUMPDEST": 0x5B, "PUSH0": 0x5F,
        "CREATE": 0xF0, "CALL": 0xF1, "CALLCODE": 0xF2, "RETURN": 0xF3,
        "DELEGATECALL": 0xF4, "CREATE2": 0xF5, "STATICCALL": 0xFA,
        "REVERT": 0xFD, "INVALID": 0xFE, "SELFDESTRUCT": 0xFF,
    }
    members = list(named.items())
    members += [(f"PUSH{n}", 0x5F + n) for n in range(1, 33)]
    members += [(f"DUP{n}", 0x7F + n) for n in range(1, 17)]
    members += [(f"SWAP{n}", 0x8F + n) for n in range(1, 17)]
    members += [(f"LOG{n}", 0xA0 + n) for n in range(5)]
    return sorted(members, key=lambda item: item[1])


# The instruction opcodes.
Opcode = IntEnum("Opcode", _opcode_members(), module=__name__)


class ExecutionError(Exception):
    """Raised when execution terminates with a non-success status."""

    def __init__(self, status: StatusCode) -> None:
        super().__init__(status.name)
        self.status = status


@dataclass(frozen=True)
class StopToken:
    """Marks an instruction that unconditionally terminates execution."""

    status: StatusCode


@dataclass
class Message:
    """The call message that started the execution."""

    kind: int = 0
    flags: int = 0
    depth: int = 0
    gas: int = 0
    recipient: bytes = bytes(20)
    sender: bytes = bytes(20)
    input_data: bytes = b""
    value: int = 0
    create2_salt: bytes = bytes(32)
    code_address: bytes = bytes(20)


@dataclass
class TxContext:
    """Transaction and block context."""

    tx_gas_price: int = 0
    tx_origin: bytes = bytes(20)
    block_coinbase: bytes = bytes(20)
    block_number: int = 0
    block_timestamp: int = 0
    block_gas_limit: int = 0
    block_prev_randao: bytes = bytes(32)
    chain_id: int = 0
    block_base_fee: int = 0


class Host(Protocol):
    """Access to the world state and block context the code runs in."""

    def account_exists(self, address: bytes) -> bool:
        """Return whether the account exists."""

    def get_balance(self, address: bytes) -> int:
        """Return the balance of the account."""

    def get_code_size(self, address: bytes) -> int:
        """Return the size of the account's code."""

    def get_code_hash(self, address: bytes) -> bytes:
        """Return the 32-byte hash of the account's code."""

    def copy_code(self, address: bytes, code_offset: int, size: int) -> bytes:
        """Return at most ``size`` bytes of the account's code from ``code_offset``."""

    def selfdestruct(self, address: bytes, beneficiary: bytes) -> bool:
        """Register the account for destruction; return whether it was newly registered."""

    def get_tx_context(self) -> TxContext:
        """Return the transaction and block context."""

    def get_block_hash(self, number: int) -> bytes:
        """Return the 32-byte hash of the given block."""

    def emit_log(self, address: bytes, data: bytes, topics: Sequence[bytes]) -> None:
        """Record a log entry."""

    def access_account(self, address: bytes) -> AccessStatus:
        """Mark the account as accessed and return its previous status."""


class Memory:
    """The byte-addressed, zero-initialised EVM memory."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)

    def grow(self, new_size: int) -> None:
        """Extend the memory with zeros up to ``new_size`` bytes; never shrinks."""
        if new_size > len(self._data):
            self._data.extend(bytes(new_size - len(self._data)))

    def _check_range(self, offset: int, size: int) -> None:
        if offset < 0 or size < 0 or offset + size > len(self._data):
            raise IndexError(f"memory range [{offset}, {offset + size}) out of bounds")

    def read(self, offset: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``offset``."""
        self._check_range(offset, size)
        return bytes(self._data[offset:offset + size])

    def write(self, offset: int, data: bytes) -> None:
        """Overwrite memory at ``offset`` with ``data``."""
        self._check_range(offset, len(data))
        self._data[offset:offset + len(data)] = data

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)


class ExecutionState:
    """The mutable state of one code execution."""

    def __init__(
        self,
        message: Optional[Message] = None,
        revision: Revision = Revision.LATEST_STABLE,
        host: Optional[Host] = None,
        code: bytes = b"",
    ) -> None:
        self.reset(message if message is not None else Message(), revision, host, code)

    def reset(
        self, message: Message, revision: Revision, host: Optional[Host], code: bytes
    ) -> None:
        """Reinitialise the state for a new execution."""
        self.gas_left = message.gas
        self.gas_refund = 0
        self.memory = Memory()
        self.msg = message
        self.rev = revision
        self.host = host
        self.original_code = bytes(code)
        self.return_data = b""
        self.status = StatusCode.SUCCESS
        self.output_offset = 0
        self.output_size = 0
        self.analysis = None
        self._tx_context: Optional[TxContext] = None

    @property
    def tx_context(self) -> TxContext:
        """The transaction context, fetched from the host once and cached."""
        if self._tx_context is None:
            self._tx_context = self.host.get_tx_context()
        return self._tx_context

    def in_static_mode(self) -> bool:
        """Return whether state modifications are forbidden."""
        return bool(self.msg.flags & STATIC_FLAG)

    def charge(self, cost: int) -> None:
        """Subtract ``cost`` from the gas left; raise when it goes negative."""
        self.gas_left -= cost
        if self.gas_left < 0:
            raise ExecutionError(StatusCode.OUT_OF_GAS)


def num_words(size_in_bytes: int) -> int:
    """Return the number of words needed to hold ``size_in_bytes`` bytes."""
    return (size_in_bytes + WORD_SIZE - 1) // WORD_SIZE


def grow_memory(state: ExecutionState, new_size: int) -> None:
    """Grow memory to cover ``new_size`` bytes, charging the expansion cost."""
    new_words = num_words(new_size)
    current_words = len(state.memory) // WORD_SIZE
    new_cost = 3 * new_words + new_words * new_words // 512
    current_cost = 3 * current_words + current_words * current_words // 512
    state.charge(new_cost - current_cost)
    state.memory.grow(new_words * WORD_SIZE)


def check_memory(state: ExecutionState, offset: int, size: int) -> None:
    """Ensure memory covers ``[offset, offset + size)``, charging for growth.

    An access of size 0 is always valid. Raises ``ExecutionError`` with
    ``OUT_OF_GAS`` for unreasonable offsets or sizes, or when gas runs out.
    """
    if size == 0:
        return
    if size > MAX_BUFFER_SIZE or offset > MAX_BUFFER_SIZE:
        raise ExecutionError(StatusCode.OUT_OF_GAS)
    new_size = offset + size
    if new_size > len(state.memory):
        grow_memory(state, new_size)