"""ERC-20 ledger of the strategy account.

- Allowance changes are sent as plain ``approve(spender, new_allowance)``

- ``increaseAllowance`` and ``decreaseAllowance`` are not part of ERC-20
  and are missing from OpenZeppelin 5 tokens, so they are not used
"""

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from eth_compounder.abi import ERC20_ABI, get_deployed_contract
from eth_compounder.collaborators import TokenLedger
from eth_compounder.onchain.transact import ContractTransactor


class Web3TokenLedger(TokenLedger):
    """Read balances and approvals, send transfers and approval changes."""

    def __init__(self, web3: Web3, account: HexAddress, transactor: ContractTransactor):
        self.web3 = web3
        self.account = Web3.to_checksum_address(account)
        self.transactor = transactor

        #: Token address -> ERC-20 proxy
        self.contracts: dict[str, Contract] = {}

    def get_token_contract(self, token: HexAddress) -> Contract:
        key = token.lower()
        if key not in self.contracts:
            self.contracts[key] = get_deployed_contract(self.web3, ERC20_ABI, token)
        return self.contracts[key]

    def balance_of(self, token: HexAddress, holder: HexAddress | None = None) -> int:
        holder = Web3.to_checksum_address(holder) if holder else self.account
        return self.get_token_contract(token).functions.balanceOf(holder).call()

    def transfer(self, token: HexAddress, to: HexAddress, amount: int) -> None:
        self.transactor.transact(self.get_token_contract(token).functions.transfer(Web3.to_checksum_address(to), amount))

    def allowance(self, token: HexAddress, spender: HexAddress) -> int:
        return self.get_token_contract(token).functions.allowance(self.account, Web3.to_checksum_address(spender)).call()

    def increase_allowance(self, token: HexAddress, spender: HexAddress, amount: int) -> None:
        self._approve(token, spender, self.allowance(token, spender) + amount)

    def decrease_allowance(self, token: HexAddress, spender: HexAddress, amount: int) -> None:
        current = self.allowance(token, spender)
        assert amount <= current, f"Cannot decrease allowance {current} of {spender} by {amount}, token {token}"
        self._approve(token, spender, current - amount)

    def _approve(self, token: HexAddress, spender: HexAddress, amount: int):
        self.transactor.transact(self.get_token_contract(token).functions.approve(Web3.to_checksum_address(spender), amount))
