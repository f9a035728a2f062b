import pytest
from hypothesis import given
from hypothesis import strategies as st

from evmcore import arith
from evmcore.stack import Stack
from evmcore.state import ExecutionError, ExecutionState, Message, Revision, StatusCode

MAX = 2**256 - 1
uint256 = st.integers(min_value=0, max_value=MAX)


def _neg(value):
    return (-value) % 2**256


def _run(fn, *items):
    stack = Stack(items)
    fn(stack)
    assert len(stack) == 1
    return stack.top()


def _exp(base, exponent, gas, rev=Revision.LONDON):
    state = ExecutionState(Message(gas=gas), rev)
    stack = Stack([exponent, base])
    arith.exp(stack, state)
    return state, stack


def test_sub_wraps_below_zero():
    assert _run(arith.sub, 1, 0) == MAX


def test_add_wraps():
    assert _run(arith.add, MAX, 1) == 0


def test_divmod_of_minus_one():
    x = 0x0D << 248
    assert _run(arith.div, x, MAX) == 0x13
    assert _run(arith.mod, x, MAX) == (
        0x08FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF
    )


@pytest.mark.parametrize("fn", [arith.div, arith.sdiv, arith.mod, arith.smod])
def test_division_by_zero(fn):
    assert _run(fn, 0, 0xFF) == 0
    assert _run(fn, 0, 0xEFFE) == 0


@pytest.mark.parametrize("fn", [arith.addmod, arith.mulmod])
def test_modular_by_zero(fn):
    assert _run(fn, 0, 0, 0) == 0


def test_signed_division():
    assert _run(arith.sdiv, _neg(3), 17) == _neg(5)
    assert _run(arith.smod, _neg(3), 17) == 2


def test_addmod_mulmod():
    a = 0xCDEB8272FC01D4D50A6EC165D2EA477AF19B9B2C198459F59079583B97E88A66
    b = 0x52E7E7A03B86F534D2E338AA1BB05BA3539CB2F51304CDBCE69CE2D422C456CA
    c = 0xE0F2F0CAE05C220260E1724BDC66A0F83810BD1217BD105CB2DA11E257C6CDF6
    assert _run(arith.addmod, a, b, c) == (
        0x65EF55F81FE142622955E990252CB5209A11D4DB113D842408FD9C7AE2A29A5A
    )
    assert _run(arith.mulmod, a, b, c) == (
        0x34E04890131A297202753CAE4C72EFD508962C9129AED8B08C8E87AB425B7258
    )


@pytest.mark.parametrize(
    "fn,second,top,expected",
    [
        (arith.lt, 1, MAX, 0),
        (arith.gt, 1, MAX, 1),
        (arith.slt, 1, MAX, 1),
        (arith.sgt, 1, MAX, 0),
        (arith.eq, 1, MAX, 0),
        (arith.slt, MAX, _neg(2), 1),
        (arith.sgt, MAX, _neg(2), 0),
    ],
)
def test_comparison(fn, second, top, expected):
    assert _run(fn, second, top) == expected


def test_bitwise():
    assert _run(arith.and_, 0xAA, 0xFF) == 0xAA & 0xFF
    assert _run(arith.or_, 0xAA, 0xFF) == 0xAA | 0xFF
    assert _run(arith.xor_, 0xAA, 0xFF) == 0xAA ^ 0xFF


def test_iszero_and_not():
    assert _run(arith.iszero, 0) == 1
    assert _run(arith.iszero, 5) == 0
    assert _run(arith.not_, 0) == MAX


@pytest.mark.parametrize("n,expected", [(0, 0), (28, 0xAA), (31, 0xDD), (32, 0)])
def test_byte(n, expected):
    assert _run(arith.byte, 0xAABBCCDD, n) == expected


def test_byte_overflow():
    assert _run(arith.byte, MAX, 32) == 0
    assert _run(arith.byte, MAX, 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF) == 0


def test_signextend():
    assert _run(arith.signextend, 0x017FFE, 0) == (
        0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFE
    )
    assert _run(arith.signextend, 0x017FFE, 1) == 0x7FFE


def test_signextend_31():
    x = (2**256 - 0x101) >> 8
    assert _run(arith.signextend, x, 30) == (
        0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFE
    )
    assert _run(arith.signextend, x, 31) == (
        0x00FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFE
    )


@given(uint256, st.integers(min_value=0, max_value=40))
def test_signextend_preserves_low_bytes(x, ext):
    result = _run(arith.signextend, x, ext)
    if ext >= 31:
        assert result == x
        return
    low_bits = 8 * (ext + 1)
    low_mask = (1 << low_bits) - 1
    assert result & low_mask == x & low_mask
    assert result >> low_bits in (0, (1 << (256 - low_bits)) - 1)


def test_exp_value():
    state, stack = _exp(3, 0x2019, 10**6)
    assert stack.top() == 0x263CF24662B24C371A647C1340022619306E431BF3A4298D4B5998A3F1C1AAA3


@pytest.mark.parametrize("base", [0, 1])
def test_exp_zero_exponent(base):
    state, stack = _exp(base, 0, 0)
    assert stack.top() == 1
    assert state.gas_left == 0


def test_exp_out_of_gas():
    state, stack = _exp(MAX, MAX, 1600)
    assert state.gas_left == 0
    with pytest.raises(ExecutionError) as info:
        _exp(MAX, MAX, 1599)
    assert info.value.status == StatusCode.OUT_OF_GAS


def test_exp_pre_spurious_dragon():
    state, stack = _exp(3, 0x012019, 30, Revision.TANGERINE_WHISTLE)
    assert state.gas_left == 0
    assert stack.top() == 0x422EA3761C4F6517DF7F102BB18B96ABF4735099209CA21256A6B8AC4D1DAAA3
    with pytest.raises(ExecutionError):
        _exp(3, 0x012019, 29, Revision.TANGERINE_WHISTLE)


def test_shifts():
    assert _run(arith.shl, 5, 1) == 5 << 1
    assert _run(arith.shr, 5, 1) == 5 >> 1
    assert _run(arith.sar, MAX, 2) == MAX
    assert _run(arith.sar, 0, 1) == 0


@pytest.mark.parametrize("fn,expected", [(arith.shl, 0), (arith.shr, 0), (arith.sar, MAX)])
def test_shift_overflow(fn, expected):
    assert _run(fn, MAX, 0x100) == expected


def test_push0():
    stack = Stack([7])
    arith.push0(stack)
    assert stack.pop() == 0
    assert stack.pop() == 7


def test_dup_all_then_add():
    stack = Stack([1])
    for n in range(1, 17):
        arith.dup(stack, n)
    for _ in range(16):
        arith.add(stack)
    assert len(stack) == 1
    assert stack.top() == 17


def test_reverse_16_stack_items():
    stack = Stack(list(range(1, 17)) + [0])
    for far, near in zip(range(16, 8, -1), range(1, 9)):
        arith.swap(stack, far)
        arith.swap(stack, near)
        arith.swap(stack, far)
    stack.pop()
    assert [stack.pop() for _ in range(16)] == list(range(1, 17))


@pytest.mark.parametrize("fn", [arith.dup, arith.swap])
@pytest.mark.parametrize("n", [0, 17])
def test_dup_swap_reject_bad_index(fn, n):
    with pytest.raises(ValueError):
        fn(Stack([1] * 20), n)


def test_dup_underflow():
    with pytest.raises(ExecutionError) as info:
        arith.dup(Stack([1]), 2)
    assert info.value.status == StatusCode.STACK_UNDERFLOW


@given(uint256, uint256.filter(lambda v: v != 0))
def test_signed_division_identity(a, b):
    quot = _run(arith.sdiv, b, a)
    rem = _run(arith.smod, b, a)
    assert (quot * b + rem) & MAX == a
    if rem:
        assert (rem >> 255) == (a >> 255)


@given(uint256, uint256)
def test_sub_then_add_round_trip(a, b):
    diff = _run(arith.sub, b, a)
    assert _run(arith.add, b, diff) == a


@given(uint256)
def test_double_not_is_identity(x):
    assert _run(arith.not_, _run(arith.not_, x)) == x