"""Strategist payment router."""

from web3 import Web3
from web3.contract import Contract

from eth_typing import HexAddress

from eth_compounder.collaborators import FeeRouter
from eth_compounder.onchain.transact import ContractTransactor


class PaymentFeeRouter(FeeRouter):
    """``routePayment(token, amount)`` pulls the strategist cut and forwards it."""

    def __init__(self, contract: Contract, transactor: ContractTransactor):
        self.contract = contract
        self.address = contract.address.lower()
        self.transactor = transactor

    def route_payment(self, asset: HexAddress, amount: int) -> None:
        self.transactor.transact(self.contract.functions.routePayment(Web3.to_checksum_address(asset), amount))
