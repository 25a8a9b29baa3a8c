"""Rollback and time for on-chain runs.

- On Anvil, a failed strategy entry point is rolled back with ``evm_snapshot`` / ``evm_revert``

- On a live network transactions already mined cannot be undone,
  :py:class:`NoRollbackJournal` only reports it
"""

import datetime
import logging
from typing import Any, Optional

from web3 import Web3

from eth_compounder.collaborators import Clock, StateJournal
from eth_compounder.utils import from_unix_timestamp

logger = logging.getLogger(__name__)


class RPCRequestError(Exception):
    """Anvil answered a snapshot or revert call with an error."""


def call_anvil_method(web3: Web3, method: str, args: Optional[list] = None) -> Any:
    """Call an Anvil specific JSON-RPC method like ``evm_snapshot``.

    :raise RPCRequestError:
        Node returned an error instead of a result
    """
    response = web3.provider.make_request(method, tuple(args or ()))  # type: ignore
    if "error" in response:
        raise RPCRequestError(f"{method}() failed: {response['error']['message']}")
    return response["result"]


def is_anvil(web3: Web3) -> bool:
    """Check the node client version, e.g. ``anvil/v0.2.0``."""
    return "anvil/" in web3.client_version


class AnvilJournal(StateJournal):
    """Snapshot and revert the whole Anvil chain state.

    Anvil has no call to drop a snapshot, :py:meth:`discard` is a no-op.
    """

    def __init__(self, web3: Web3):
        self.web3 = web3

    def snapshot(self) -> int:
        return int(call_anvil_method(self.web3, "evm_snapshot", []), 16)

    def revert(self, snapshot_id: int) -> bool:
        return call_anvil_method(self.web3, "evm_revert", [hex(snapshot_id)])


class NoRollbackJournal(StateJournal):
    """Live network journal, mined transactions stay mined."""

    def __init__(self):
        self.counter = 0

    def snapshot(self) -> int:
        self.counter += 1
        return self.counter

    def revert(self, snapshot_id: int) -> bool:
        logger.warning("Cannot roll back on a live network, transactions since checkpoint #%d stay in effect", snapshot_id)
        return False


class BlockClock(Clock):
    """Latest block time as the clock, so deadlines follow chain time on forks."""

    def __init__(self, web3: Web3):
        self.web3 = web3

    def now(self) -> datetime.datetime:
        ts = self.web3.eth.get_block("latest")["timestamp"]

        # Depending on middleware, response might be converted or not
        if type(ts) == str:
            ts = int(ts, 16)

        return from_unix_timestamp(ts)
