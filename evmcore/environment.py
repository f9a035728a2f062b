"""Instructions that read the execution environment, memory and host state.

Each function pops its arguments from the stack and pushes its result.
Stack requirements and base gas costs are assumed to be checked by the
caller. Failures raise ``ExecutionError``. The terminating instructions
return a ``StopToken`` that carries the final status.
"""

from __future__ import annotations

from Crypto.Hash import keccak

from evmcore.stack import Stack
from evmcore.state import (
    MAX_BUFFER_SIZE,
    AccessStatus,
    ExecutionError,
    ExecutionState,
    Revision,
    StatusCode,
    StopToken,
    check_memory,
    num_words,
)

#: Gas charged for the first access to an account in a transaction (EIP-2929).
COLD_ACCOUNT_ACCESS_COST = 2600

#: Gas charged for an access to an already accessed account (EIP-2929).
WARM_STORAGE_READ_COST = 100

#: Extra gas for a cold access on top of the warm cost already paid.
ADDITIONAL_COLD_ACCOUNT_ACCESS_COST = COLD_ACCOUNT_ACCESS_COST - WARM_STORAGE_READ_COST

#: Gas charged for sending value to a non-existing account on selfdestruct.
SELFDESTRUCT_NEW_ACCOUNT_COST = 25000

#: Refund for a selfdestruct before the London revision.
SELFDESTRUCT_REFUND = 24000

_ADDRESS_MASK = (1 << 160) - 1
_UINT64_MASK = (1 << 64) - 1


def _load(data: bytes) -> int:
    return int.from_bytes(data, "big")


def _to_address(value: int) -> bytes:
    return (value & _ADDRESS_MASK).to_bytes(20, "big")


def _to_bytes32(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _charge_cold_access(state: ExecutionState, address: bytes, cost: int) -> None:
    if state.rev >= Revision.BERLIN and state.host.access_account(address) == AccessStatus.COLD:
        state.charge(cost)


def _copy_to_memory(
    state: ExecutionState, dst: int, source: bytes, src: int, size: int
) -> None:
    """Copy ``size`` bytes of ``source`` from ``src`` to memory, zero-padding the rest."""
    copy_size = min(size, len(source) - src)
    state.charge(num_words(size) * 3)
    if size > 0:
        chunk = source[src:src + copy_size]
        state.memory.write(dst, chunk.ljust(size, b"\x00"))


def keccak256(stack: Stack, state: ExecutionState) -> None:
    """KECCAK256: hash of the memory range ``[offset, offset + size)``."""
    index = stack.pop()
    size = stack.pop()
    check_memory(state, index, size)
    state.charge(num_words(size) * 6)
    data = state.memory.read(index, size) if size else b""
    stack.push(_load(keccak.new(digest_bits=256, data=data).digest()))


def address(stack: Stack, state: ExecutionState) -> None:
    """ADDRESS: the address of the executing account."""
    stack.push(_load(state.msg.recipient))


def balance(stack: Stack, state: ExecutionState) -> None:
    """BALANCE: the balance of the given account."""
    addr = _to_address(stack.pop())
    _charge_cold_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    stack.push(state.host.get_balance(addr))


def origin(stack: Stack, state: ExecutionState) -> None:
    """ORIGIN: the transaction origin."""
    stack.push(_load(state.tx_context.tx_origin))


def caller(stack: Stack, state: ExecutionState) -> None:
    """CALLER: the sender of the current message."""
    stack.push(_load(state.msg.sender))


def callvalue(stack: Stack, state: ExecutionState) -> None:
    """CALLVALUE: the value sent with the current message."""
    stack.push(state.msg.value)


def calldataload(stack: Stack, state: ExecutionState) -> None:
    """CALLDATALOAD: 32 bytes of input from the index, zero-padded."""
    index = stack.pop()
    input_data = state.msg.input_data
    if len(input_data) < index:
        stack.push(0)
        return
    stack.push(_load(input_data[index:index + 32].ljust(32, b"\x00")))


def calldatasize(stack: Stack, state: ExecutionState) -> None:
    """CALLDATASIZE: the size of the input."""
    stack.push(len(state.msg.input_data))


def calldatacopy(stack: Stack, state: ExecutionState) -> None:
    """CALLDATACOPY: copy input to memory, zero-padding past its end."""
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    input_data = state.msg.input_data
    src = min(len(input_data), input_index)
    _copy_to_memory(state, mem_index, input_data, src, size)


def codesize(stack: Stack, state: ExecutionState) -> None:
    """CODESIZE: the size of the executing code."""
    stack.push(len(state.original_code))


def codecopy(stack: Stack, state: ExecutionState) -> None:
    """CODECOPY: copy the executing code to memory, zero-padding past its end."""
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    code = state.original_code
    src = min(len(code), input_index)
    _copy_to_memory(state, mem_index, code, src, size)


def gasprice(stack: Stack, state: ExecutionState) -> None:
    """GASPRICE: the transaction gas price."""
    stack.push(state.tx_context.tx_gas_price)


def basefee(stack: Stack, state: ExecutionState) -> None:
    """BASEFEE: the block base fee."""
    stack.push(state.tx_context.block_base_fee)


def extcodesize(stack: Stack, state: ExecutionState) -> None:
    """EXTCODESIZE: the code size of the given account."""
    addr = _to_address(stack.pop())
    _charge_cold_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    stack.push(state.host.get_code_size(addr))


def extcodecopy(stack: Stack, state: ExecutionState) -> None:
    """EXTCODECOPY: copy another account's code to memory."""
    addr = _to_address(stack.pop())
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    state.charge(num_words(size) * 3)
    _charge_cold_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    if size > 0:
        src = min(MAX_BUFFER_SIZE, input_index)
        copied = state.host.copy_code(addr, src, size)[:size]
        state.memory.write(mem_index, copied.ljust(size, b"\x00"))


def returndatasize(stack: Stack, state: ExecutionState) -> None:
    """RETURNDATASIZE: the size of the last call's output."""
    stack.push(len(state.return_data))


def returndatacopy(stack: Stack, state: ExecutionState) -> None:
    """RETURNDATACOPY: copy the last call's output; reading past it is an error."""
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    return_data = state.return_data
    if len(return_data) < input_index or input_index + size > len(return_data):
        raise ExecutionError(StatusCode.INVALID_MEMORY_ACCESS)
    state.charge(num_words(size) * 3)
    if size > 0:
        state.memory.write(mem_index, return_data[input_index:input_index + size])


def extcodehash(stack: Stack, state: ExecutionState) -> None:
    """EXTCODEHASH: the code hash of the given account."""
    addr = _to_address(stack.pop())
    _charge_cold_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    stack.push(_load(state.host.get_code_hash(addr)))


def blockhash(stack: Stack, state: ExecutionState) -> None:
    """BLOCKHASH: the hash of one of the 256 most recent blocks, else zero."""
    number = stack.pop()
    upper_bound = state.tx_context.block_number
    lower_bound = max(upper_bound - 256, 0)
    if lower_bound <= number < upper_bound:
        stack.push(_load(state.host.get_block_hash(number)))
    else:
        stack.push(0)


def coinbase(stack: Stack, state: ExecutionState) -> None:
    """COINBASE: the block beneficiary."""
    stack.push(_load(state.tx_context.block_coinbase))


def timestamp(stack: Stack, state: ExecutionState) -> None:
    """TIMESTAMP: the block timestamp as an unsigned 64-bit value."""
    stack.push(state.tx_context.block_timestamp & _UINT64_MASK)


def number(stack: Stack, state: ExecutionState) -> None:
    """NUMBER: the block number as an unsigned 64-bit value."""
    stack.push(state.tx_context.block_number & _UINT64_MASK)


def prevrandao(stack: Stack, state: ExecutionState) -> None:
    """PREVRANDAO: the previous block's randomness."""
    stack.push(_load(state.tx_context.block_prev_randao))


def gaslimit(stack: Stack, state: ExecutionState) -> None:
    """GASLIMIT: the block gas limit as an unsigned 64-bit value."""
    stack.push(state.tx_context.block_gas_limit & _UINT64_MASK)


def chainid(stack: Stack, state: ExecutionState) -> None:
    """CHAINID: the chain identifier."""
    stack.push(state.tx_context.chain_id)


def selfbalance(stack: Stack, state: ExecutionState) -> None:
    """SELFBALANCE: the balance of the executing account."""
    stack.push(state.host.get_balance(state.msg.recipient))


def mload(stack: Stack, state: ExecutionState) -> None:
    """MLOAD: the 32-byte word at the given memory offset."""
    index = stack.pop()
    check_memory(state, index, 32)
    stack.push(_load(state.memory.read(index, 32)))


def mstore(stack: Stack, state: ExecutionState) -> None:
    """MSTORE: store a 32-byte word in memory."""
    index = stack.pop()
    value = stack.pop()
    check_memory(state, index, 32)
    state.memory.write(index, _to_bytes32(value))


def mstore8(stack: Stack, state: ExecutionState) -> None:
    """MSTORE8: store the lowest byte of the value in memory."""
    index = stack.pop()
    value = stack.pop()
    check_memory(state, index, 1)
    state.memory.write(index, bytes([value & 0xFF]))


def msize(stack: Stack, state: ExecutionState) -> None:
    """MSIZE: the current memory size in bytes."""
    stack.push(len(state.memory))


def gas(stack: Stack, state: ExecutionState) -> None:
    """GAS: the gas left."""
    stack.push(state.gas_left)


def log(stack: Stack, state: ExecutionState, num_topics: int) -> None:
    """LOGn: emit a log of a memory range with ``num_topics`` topics."""
    if not 0 <= num_topics <= 4:
        raise ValueError(f"number of log topics must be in 0..4, got {num_topics}")
    if state.in_static_mode():
        raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)
    offset = stack.pop()
    size = stack.pop()
    check_memory(state, offset, size)
    state.charge(size * 8)
    topics = [_to_bytes32(stack.pop()) for _ in range(num_topics)]
    data = state.memory.read(offset, size) if size else b""
    state.host.emit_log(state.msg.recipient, data, topics)


def _return_impl(stack: Stack, state: ExecutionState, status: StatusCode) -> StopToken:
    offset = stack[0]
    size = stack[1]
    try:
        check_memory(state, offset, size)
    except ExecutionError as error:
        return StopToken(error.status)
    state.output_size = size
    if size != 0:
        state.output_offset = offset
    return StopToken(status)


def return_(stack: Stack, state: ExecutionState) -> StopToken:
    """RETURN: finish successfully with the memory range as output."""
    return _return_impl(stack, state, StatusCode.SUCCESS)


def revert(stack: Stack, state: ExecutionState) -> StopToken:
    """REVERT: finish with a revert and the memory range as output."""
    return _return_impl(stack, state, StatusCode.REVERT)


def selfdestruct(stack: Stack, state: ExecutionState) -> StopToken:
    """SELFDESTRUCT: register the account for destruction and stop."""
    if state.in_static_mode():
        return StopToken(StatusCode.STATIC_MODE_VIOLATION)

    beneficiary = _to_address(stack[0])
    try:
        _charge_cold_access(state, beneficiary, COLD_ACCOUNT_ACCESS_COST)
        if state.rev >= Revision.TANGERINE_WHISTLE:
            if state.rev == Revision.TANGERINE_WHISTLE or state.host.get_balance(
                state.msg.recipient
            ):
                if not state.host.account_exists(beneficiary):
                    state.charge(SELFDESTRUCT_NEW_ACCOUNT_COST)
    except ExecutionError as error:
        return StopToken(error.status)

    if state.host.selfdestruct(state.msg.recipient, beneficiary):
        if state.rev < Revision.LONDON:
            state.gas_refund += SELFDESTRUCT_REFUND
    return StopToken(StatusCode.SUCCESS)


def stop() -> StopToken:
    """STOP: finish successfully with no output."""
    return StopToken(StatusCode.SUCCESS)


def invalid() -> StopToken:
    """INVALID: the designated invalid instruction."""
    return StopToken(StatusCode.INVALID_INSTRUCTION)