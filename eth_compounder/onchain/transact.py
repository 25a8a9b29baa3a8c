"""Send strategy transactions and check receipts."""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.types import TxReceipt

logger = logging.getLogger(__name__)

#: Gas limit for strategy transactions unless configured otherwise
DEFAULT_GAS_LIMIT = 1_500_000


class TransactionReverted(Exception):
    """A strategy transaction was mined with status 0."""

    def __init__(self, message: str, receipt: TxReceipt | None = None):
        super().__init__(message)
        self.receipt = receipt


@dataclass
class ContractTransactor:
    """Send bound contract calls from the strategy account."""

    web3: Web3

    #: Strategy account
    sender: HexAddress

    gas_limit: int = DEFAULT_GAS_LIMIT

    def transact(self, bound_call: ContractFunction) -> TxReceipt:
        """Send and wait for the receipt.

        :raise TransactionReverted:
            Transaction failed
        """
        tx_hash = bound_call.transact({"from": Web3.to_checksum_address(self.sender), "gas": self.gas_limit})
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] == 0:
            raise TransactionReverted(f"Transaction {tx_hash.hex()} calling {bound_call.fn_name}() reverted", receipt=receipt)
        logger.debug("%s() mined, gas used %s", bound_call.fn_name, receipt.get("gasUsed"))
        return receipt
