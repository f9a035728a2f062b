# evmcore

evmcore is an Ethereum Virtual Machine interpreter written in pure Python.
It first analyses the bytecode into basic blocks. The interpreter then checks
each block's base gas cost and stack requirements once, when the block is
entered, rather than before every instruction.

## Installation

```
pip install evmcore
```

To run the test suite, install the test extra and run pytest:

```
pip install "evmcore[test]"
pytest
```

## Modules

- `evmcore.state` holds the shared execution model:
  - the `Revision`, `StatusCode`, `AccessStatus` and `Opcode` enumerations;
  - the `Message` and `TxContext` dataclasses;
  - the `Host` protocol;
  - the zero-initialised `Memory` (`grow`, `read`, `write`, `len()`);
  - `ExecutionState` (`charge`, `in_static_mode`, and a cached `tx_context`);
  - the memory-expansion helpers `num_words`, `grow_memory` and `check_memory`;
  - the `ExecutionError` and `StopToken` types.
- `evmcore.stack` holds `Stack`, a stack of 256-bit words. `stack[0]` is the
  top item. Reading below the bottom raises `ExecutionError` with
  `STACK_UNDERFLOW`.
- `evmcore.arith` has the arithmetic, comparison, bitwise and shift
  instructions, from `add` through `sar`. It also has `push0`,
  `dup(stack, n)` and `swap(stack, n)`.
- `evmcore.environment` has the instructions that use memory, call data,
  code, return data, the transaction context or the host. Examples are
  `keccak256`, `calldatacopy`, `extcodecopy`, `blockhash`, `mstore` and
  `log(stack, state, num_topics)`. It also has the terminating instructions
  `return_`, `revert`, `selfdestruct`, `stop` and `invalid`.
- `evmcore.analysis` has `analyze(op_table, code)` and
  `find_jumpdest(analysis, offset)`, and the types `BlockInfo`,
  `OpTableEntry`, `Instruction` and `AdvancedCodeAnalysis`.
- `evmcore.interpreter` has `build_op_table(gas_costs, traits)`,
  `execute(state, analysis)` and
  `execute_code(host, revision, message, code, op_table)`. It also has
  `AdvancedExecutionState` and `Result`.

## Running code

You supply the opcode table yourself. Call `build_op_table` with two lists of
256 entries:

- `gas_costs`: the base cost of each opcode, or `None` if the opcode is
  undefined;
- `traits`: a `(stack height required, stack height change)` pair for each
  opcode.

`JUMPDEST` must be defined, because every block starts with it. `STOP` must
also be defined, because it closes the code.

```python
from evmcore.interpreter import build_op_table, execute_code
from evmcore.state import Message, Revision, StatusCode

costs = {0x00: 0, 0x01: 3, 0x52: 3, 0x5B: 1, 0x60: 3, 0xF3: 0}
stack_traits = {0x01: (2, -1), 0x52: (2, -2), 0x60: (0, 1), 0xF3: (2, -2)}
gas_costs = [costs.get(op) for op in range(256)]
traits = [stack_traits.get(op, (0, 0)) for op in range(256)]
op_table = build_op_table(gas_costs, traits)

code = bytes.fromhex("6007600d0160005260206000f3")  # return 7 + 13 as a word
result = execute_code(None, Revision.LONDON, Message(gas=100_000), code, op_table)

assert result.status == StatusCode.SUCCESS
assert result.output[-1] == 20
```

`Result` has four fields:

- `status`: a `StatusCode`;
- `gas_left`: zero unless execution succeeded or reverted;
- `gas_refund`: kept only on success;
- `output`: the returned memory range, as bytes.

Instructions that read account or block data call the `host`. The host must
implement the `Host` protocol:

- `account_exists`, `get_balance`, `get_code_size`, `get_code_hash`,
  `copy_code`;
- `selfdestruct`, `emit_log`, `access_account`;
- `get_tx_context`, `get_block_hash`.

Code that never uses the host can run with `None` as the host, as the example
above does.

## Errors

An instruction that fails raises `ExecutionError`, which carries a
`StatusCode`. Examples are out of gas, stack underflow and invalid memory
access. `execute` catches the error and reports its status in the `Result`.

The terminating instructions return a `StopToken` that carries the final
status. These are `STOP`, `RETURN`, `REVERT`, `INVALID` and `SELFDESTRUCT`.

`dup`, `swap` and `log` raise `ValueError` when given an index outside their
range. `build_op_table` raises `ValueError` unless both of its lists have 256
entries.

## What it does not do

- It ships no per-revision gas cost or stack trait tables. The caller
  provides them.
- It has no storage, call or contract-creation instructions. `build_op_table`
  treats the following opcodes as undefined, even when they are given a cost:
  - `SLOAD` and `SSTORE`;
  - `CALL`, `CALLCODE`, `DELEGATECALL` and `STATICCALL`;
  - `CREATE` and `CREATE2`.
- It provides no `Host` implementation, no world state and no command-line
  tool.