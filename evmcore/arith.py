"""Arithmetic, comparison, bitwise and stack-shuffling instructions.

Each function pops its arguments from the stack and pushes its result,
leaving the stack at its final height. Stack requirements and base gas
costs are assumed to be checked by the caller.
"""

from __future__ import annotations

from evmcore.stack import Stack
from evmcore.state import ExecutionState, Revision

_BITS = 256
_MODULUS = 1 << _BITS
_MASK = _MODULUS - 1
_SIGN_BIT = 1 << (_BITS - 1)


def _to_signed(value: int) -> int:
    return value - _MODULUS if value & _SIGN_BIT else value


def _sdivrem(a: int, b: int) -> tuple[int, int]:
    x, y = _to_signed(a), _to_signed(b)
    quot = abs(x) // abs(y)
    rem = abs(x) % abs(y)
    if (x < 0) != (y < 0):
        quot = -quot
    if x < 0:
        rem = -rem
    return quot & _MASK, rem & _MASK


def add(stack: Stack) -> None:
    """ADD: a + b modulo 2**256."""
    stack.push((stack.pop() + stack.pop()) & _MASK)


def mul(stack: Stack) -> None:
    """MUL: a * b modulo 2**256."""
    stack.push((stack.pop() * stack.pop()) & _MASK)


def sub(stack: Stack) -> None:
    """SUB: top minus the second item."""
    a = stack.pop()
    b = stack.pop()
    stack.push((a - b) & _MASK)


def div(stack: Stack) -> None:
    """DIV: unsigned division; division by zero gives zero."""
    a = stack.pop()
    b = stack.pop()
    stack.push(a // b if b else 0)


def sdiv(stack: Stack) -> None:
    """SDIV: signed division truncating towards zero."""
    a = stack.pop()
    b = stack.pop()
    stack.push(_sdivrem(a, b)[0] if b else 0)


def mod(stack: Stack) -> None:
    """MOD: unsigned remainder; modulo zero gives zero."""
    a = stack.pop()
    b = stack.pop()
    stack.push(a % b if b else 0)


def smod(stack: Stack) -> None:
    """SMOD: signed remainder taking the sign of the dividend."""
    a = stack.pop()
    b = stack.pop()
    stack.push(_sdivrem(a, b)[1] if b else 0)


def addmod(stack: Stack) -> None:
    """ADDMOD: (x + y) % m computed without overflow."""
    x = stack.pop()
    y = stack.pop()
    m = stack.pop()
    stack.push((x + y) % m if m else 0)


def mulmod(stack: Stack) -> None:
    """MULMOD: (x * y) % m computed without overflow."""
    x = stack.pop()
    y = stack.pop()
    m = stack.pop()
    stack.push((x * y) % m if m else 0)


def exp(stack: Stack, state: ExecutionState) -> None:
    """EXP: charges per significant byte of the exponent, then pushes base**exponent."""
    base = stack.pop()
    exponent = stack.pop()
    significant_bytes = (exponent.bit_length() + 7) // 8
    byte_cost = 50 if state.rev >= Revision.SPURIOUS_DRAGON else 10
    state.charge(significant_bytes * byte_cost)
    stack.push(pow(base, exponent, _MODULUS))


def signextend(stack: Stack) -> None:
    """SIGNEXTEND: extend the sign of byte ``ext`` (counted from the right)."""
    ext = stack.pop()
    x = stack.pop()
    if ext < 31:
        sign_mask = 1 << (ext * 8 + 7)
        value_mask = sign_mask - 1
        x = (x | ~value_mask) & _MASK if x & sign_mask else x & value_mask
    stack.push(x)


def lt(stack: Stack) -> None:
    """LT: top < second, unsigned."""
    x = stack.pop()
    y = stack.pop()
    stack.push(int(x < y))


def gt(stack: Stack) -> None:
    """GT: top > second, unsigned."""
    x = stack.pop()
    y = stack.pop()
    stack.push(int(x > y))


def slt(stack: Stack) -> None:
    """SLT: top < second, signed."""
    x = stack.pop()
    y = stack.pop()
    stack.push(int(_to_signed(x) < _to_signed(y)))


def sgt(stack: Stack) -> None:
    """SGT: top > second, signed."""
    x = stack.pop()
    y = stack.pop()
    stack.push(int(_to_signed(x) > _to_signed(y)))


def eq(stack: Stack) -> None:
    """EQ: equality."""
    stack.push(int(stack.pop() == stack.pop()))


def iszero(stack: Stack) -> None:
    """ISZERO: 1 if the top item is zero, else 0."""
    stack.push(int(stack.pop() == 0))


def and_(stack: Stack) -> None:
    """AND: bitwise and."""
    stack.push(stack.pop() & stack.pop())


def or_(stack: Stack) -> None:
    """OR: bitwise or."""
    stack.push(stack.pop() | stack.pop())


def xor_(stack: Stack) -> None:
    """XOR: bitwise exclusive or."""
    stack.push(stack.pop() ^ stack.pop())


def not_(stack: Stack) -> None:
    """NOT: bitwise complement."""
    stack.push(stack.pop() ^ _MASK)


def byte(stack: Stack) -> None:
    """BYTE: the n-th byte of x counted from the most significant; 0 if n >= 32."""
    n = stack.pop()
    x = stack.pop()
    stack.push((x >> (8 * (31 - n))) & 0xFF if n < 32 else 0)


def shl(stack: Stack) -> None:
    """SHL: shift the second item left by the top item."""
    shift = stack.pop()
    value = stack.pop()
    stack.push((value << shift) & _MASK if shift < _BITS else 0)


def shr(stack: Stack) -> None:
    """SHR: logical shift right of the second item by the top item."""
    shift = stack.pop()
    value = stack.pop()
    stack.push(value >> shift if shift < _BITS else 0)


def sar(stack: Stack) -> None:
    """SAR: arithmetic shift right of the second item by the top item."""
    shift = stack.pop()
    value = _to_signed(stack.pop())
    if shift >= _BITS:
        result = -1 if value < 0 else 0
    else:
        result = value >> shift
    stack.push(result & _MASK)


def push0(stack: Stack) -> None:
    """PUSH0: push zero."""
    stack.push(0)


def dup(stack: Stack, n: int) -> None:
    """DUPn: push a copy of the n-th item (1 is the top)."""
    if not 1 <= n <= 16:
        raise ValueError(f"DUP index must be in 1..16, got {n}")
    stack.push(stack[n - 1])


def swap(stack: Stack, n: int) -> None:
    """SWAPn: exchange the top item with the item n places below it."""
    if not 1 <= n <= 16:
        raise ValueError(f"SWAP index must be in 1..16, got {n}")
    stack[0], stack[n] = stack[n], stack[0]