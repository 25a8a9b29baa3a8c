"""Balancer v2 weighted pool.

- Pool tokens and balances come from the Balancer vault ``getPoolTokens(poolId)``

- Joins use the ``EXACT_TOKENS_IN_FOR_BPT_OUT`` join kind,
  the vault is the spender of the underlying assets

- `Balancer weighted pool join kinds <https://docs.balancer.fi/reference/joins-and-exits/pool-joins.html>`__
"""

import logging

import eth_abi
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from eth_compounder.collaborators import LiquidityPool, TokenLedger
from eth_compounder.onchain.transact import ContractTransactor

logger = logging.getLogger(__name__)

#: WeightedPool JoinKind.EXACT_TOKENS_IN_FOR_BPT_OUT
JOIN_KIND_EXACT_TOKENS_IN_FOR_BPT_OUT = 1


def encode_exact_tokens_in_join_user_data(amounts_in: list[int], min_bpt_out: int) -> bytes:
    """Encode ``userData`` for an exact tokens in join."""
    return eth_abi.encode(["uint256", "uint256[]", "uint256"], [JOIN_KIND_EXACT_TOKENS_IN_FOR_BPT_OUT, amounts_in, min_bpt_out])


class BalancerWeightedPool(LiquidityPool):
    """Join a weighted pool through the Balancer vault."""

    def __init__(
        self,
        vault_contract: Contract,
        pool_id: str,
        pool_token: HexAddress,
        account: HexAddress,
        transactor: ContractTransactor,
        ledger: TokenLedger,
    ):
        """
        :param vault_contract:
            Balancer vault, the spender for joins

        :param pool_id:
            ``bytes32`` pool id as hex

        :param pool_token:
            BPT address, the basket token
        """
        self.vault_contract = vault_contract
        self.address = vault_contract.address.lower()
        self.pool_id = HexBytes(pool_id)
        assert len(self.pool_id) == 32, f"Balancer pool id must be bytes32, got {pool_id}"
        self.pool_token = pool_token.lower()
        self.account = Web3.to_checksum_address(account)
        self.transactor = transactor
        self.ledger = ledger

    def current_composition(self) -> list[tuple[HexAddress, int]]:
        tokens, balances, _last_change_block = self.vault_contract.functions.getPoolTokens(self.pool_id).call()
        return [(token.lower(), balance) for token, balance in zip(tokens, balances)]

    def join(self, assets_in: list[tuple[HexAddress, int]], min_bpt_out: int) -> int:
        assets = [Web3.to_checksum_address(asset) for asset, _ in assets_in]
        amounts = [amount for _, amount in assets_in]
        request = (
            assets,
            amounts,
            encode_exact_tokens_in_join_user_data(amounts, min_bpt_out),
            False,
        )
        before = self.ledger.balance_of(self.pool_token)
        self.transactor.transact(self.vault_contract.functions.joinPool(self.pool_id, self.account, self.account, request))
        minted = self.ledger.balance_of(self.pool_token) - before
        logger.debug("Joined pool %s with %s, minted %d", self.pool_id.hex(), amounts, minted)
        return minted
