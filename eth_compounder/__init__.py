"""eth_compounder package root.

Yield-compounding strategy engine: stake a vault's basket token in a farm,
harvest rewards, pay fees and reinvest the rest into a weighted liquidity pool.

- See :py:class:`eth_compounder.strategy.CompoundingStrategy` to get started

- See :py:mod:`eth_compounder.simulator` for running the engine against in-memory collaborators

- See :py:mod:`eth_compounder.onchain` for web3.py collaborators
"""

import sys

#: Slotted dataclasses and ``X | None`` annotations need this
MIN_PYTHON_VERSION = (3, 10)

if sys.version_info < MIN_PYTHON_VERSION:
    raise RuntimeError(f"eth-compounder needs Python {'.'.join(map(str, MIN_PYTHON_VERSION))} or later, running {sys.version.split()[0]}")
