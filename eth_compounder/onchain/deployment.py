"""Wire on-chain collaborators into a strategy.

Example:

.. code-block:: python

    web3 = Web3(HTTPProvider(read_json_rpc_url()))
    deployment = json.load(open("deployment.json"))
    config = StrategyConfig.from_dict(deployment)
    strategy = create_onchain_strategy(web3, config, OnchainAddresses(**deployment["contracts"]))
"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress
from web3 import Web3

from eth_compounder.abi import BALANCER_VAULT_ABI, MASTERCHEF_ABI, PAYMENT_ROUTER_ABI, UNISWAP_V2_ROUTER_ABI, get_deployed_contract
from eth_compounder.collaborators import Clock, StateJournal
from eth_compounder.config import StrategyConfig
from eth_compounder.env import read_gas_limit
from eth_compounder.onchain.anvil import AnvilJournal, BlockClock, NoRollbackJournal, is_anvil
from eth_compounder.onchain.farm import MasterChefFarm
from eth_compounder.onchain.fee_router import PaymentFeeRouter
from eth_compounder.onchain.pool import BalancerWeightedPool
from eth_compounder.onchain.router import UniswapV2Router
from eth_compounder.onchain.token import Web3TokenLedger
from eth_compounder.onchain.transact import ContractTransactor
from eth_compounder.strategy import CompoundingStrategy

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class OnchainAddresses:
    """Protocol contracts the strategy talks to."""

    #: MasterChef
    farm: HexAddress

    #: Uniswap v2 style router
    router: HexAddress

    #: Balancer vault
    balancer_vault: HexAddress

    #: Strategist payment router
    payment_router: HexAddress

    #: Pending reward view function of the farm
    pending_function: str = "pendingBeets"


def create_onchain_strategy(
    web3: Web3,
    config: StrategyConfig,
    addresses: OnchainAddresses,
    gas_limit: int | None = None,
    journal: StateJournal | None = None,
    clock: Clock | None = None,
) -> CompoundingStrategy:
    """Create a strategy with web3.py collaborators.

    :param gas_limit:
        Per transaction, read from ``COMPOUNDER_GAS_LIMIT`` if not given

    :param journal:
        Anvil snapshots when connected to Anvil, no rollback otherwise

    :param clock:
        Latest block time by default
    """
    gas_limit = gas_limit or read_gas_limit()
    transactor = ContractTransactor(web3, config.strategy_address, gas_limit)
    ledger = Web3TokenLedger(web3, config.strategy_address, transactor)

    farm = MasterChefFarm(
        get_deployed_contract(web3, MASTERCHEF_ABI, addresses.farm),
        config.farm_pool_id,
        config.strategy_address,
        transactor,
        pending_function=addresses.pending_function,
    )
    router = UniswapV2Router(get_deployed_contract(web3, UNISWAP_V2_ROUTER_ABI, addresses.router), config.strategy_address, transactor, ledger)
    pool = BalancerWeightedPool(
        get_deployed_contract(web3, BALANCER_VAULT_ABI, addresses.balancer_vault),
        config.liquidity_pool_id,
        config.basket_token,
        config.strategy_address,
        transactor,
        ledger,
    )
    fee_router = PaymentFeeRouter(get_deployed_contract(web3, PAYMENT_ROUTER_ABI, addresses.payment_router), transactor)

    if journal is None:
        if is_anvil(web3):
            journal = AnvilJournal(web3)
        else:
            logger.warning("Not connected to Anvil, failed strategy calls cannot be rolled back")
            journal = NoRollbackJournal()

    return CompoundingStrategy(
        config,
        ledger,
        farm,
        router,
        pool,
        fee_router,
        journal,
        clock=clock or BlockClock(web3),
    )
