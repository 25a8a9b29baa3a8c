"""Uniswap v2 style router."""

import logging

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from eth_compounder.collaborators import Router, TokenLedger
from eth_compounder.onchain.transact import ContractTransactor
from eth_compounder.route import Route

logger = logging.getLogger(__name__)


class UniswapV2Router(Router):
    """Swap exact input along a path.

    Output is measured as the balance change of the last token in the path.
    """

    def __init__(self, contract: Contract, account: HexAddress, transactor: ContractTransactor, ledger: TokenLedger):
        self.contract = contract
        self.address = contract.address.lower()
        self.account = Web3.to_checksum_address(account)
        self.transactor = transactor
        self.ledger = ledger

    @staticmethod
    def get_path(route: Route) -> list[str]:
        return [Web3.to_checksum_address(hop) for hop in route]

    def quote_output(self, amount_in: int, route: Route) -> int:
        amounts = self.contract.functions.getAmountsOut(amount_in, self.get_path(route)).call()
        return amounts[-1]

    def swap(self, amount_in: int, min_out: int, route: Route, deadline: int) -> int:
        token_out = route[-1]
        before = self.ledger.balance_of(token_out)
        self.transactor.transact(
            self.contract.functions.swapExactTokensForTokens(
                amount_in,
                min_out,
                self.get_path(route),
                self.account,
                deadline,
            )
        )
        received = self.ledger.balance_of(token_out) - before
        logger.debug("Swapped %d over %s, received %d", amount_in, route, received)
        return received
