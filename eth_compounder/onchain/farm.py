"""MasterChef v2 style farm.

- Beethoven X and SushiSwap MiniChef share the ``deposit/withdraw/harvest/emergencyWithdraw(pid, ..., to)`` interface

- The pending reward view is named after the reward token, e.g. ``pendingBeets`` or ``pendingSushi``
"""

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from eth_compounder.collaborators import Farm
from eth_compounder.onchain.transact import ContractTransactor


class MasterChefFarm(Farm):
    """Strategy position in one MasterChef pool."""

    def __init__(
        self,
        contract: Contract,
        pool_id: int,
        account: HexAddress,
        transactor: ContractTransactor,
        pending_function: str = "pendingBeets",
    ):
        self.contract = contract
        self.address = contract.address.lower()
        self.pool_id = pool_id
        self.account = Web3.to_checksum_address(account)
        self.transactor = transactor
        self.pending_function = pending_function

    def stake(self, amount: int) -> None:
        self.transactor.transact(self.contract.functions.deposit(self.pool_id, amount, self.account))

    def unstake(self, amount: int) -> None:
        self.transactor.transact(self.contract.functions.withdraw(self.pool_id, amount, self.account))

    def harvest_rewards(self) -> None:
        self.transactor.transact(self.contract.functions.harvest(self.pool_id, self.account))

    def emergency_exit(self) -> None:
        self.transactor.transact(self.contract.functions.emergencyWithdraw(self.pool_id, self.account))

    def position_balance(self) -> int:
        amount, _reward_debt = self.contract.functions.userInfo(self.pool_id, self.account).call()
        return amount

    def pending_rewards(self) -> int:
        pending = getattr(self.contract.functions, self.pending_function)
        return pending(self.pool_id, self.account).call()
