"""Harvest a deployed strategy account.

Used against an Anvil mainnet fork with the strategy account unlocked.

.. code-block:: shell

    export JSON_RPC_URL=http://localhost:8545
    export DEPLOYMENT_FILE=deployments/beets-wftm-usdc.json
    python scripts/harvest-onchain.py

Deployment JSON holds the :py:meth:`eth_compounder.config.StrategyConfig.from_dict` fields
and the protocol contract addresses under ``contracts``.
"""
import json
import os
from pathlib import Path

from web3 import HTTPProvider, Web3

from eth_compounder.config import StrategyConfig
from eth_compounder.env import read_json_rpc_url
from eth_compounder.onchain.deployment import OnchainAddresses, create_onchain_strategy
from eth_compounder.utils import setup_console_logging

setup_console_logging(default_log_level="info")

deployment = json.loads(Path(os.environ["DEPLOYMENT_FILE"]).read_text())
config = StrategyConfig.from_dict(deployment)
addresses = OnchainAddresses(**deployment["contracts"])

web3 = Web3(HTTPProvider(read_json_rpc_url()))
print(f"Connected to chain {web3.eth.chain_id}, last block {web3.eth.block_number:,}")

strategy = create_onchain_strategy(web3, config, addresses)
keeper = os.environ.get("KEEPER_ADDRESS", config.strategy_address)

estimate = strategy.estimate_harvest()
print(f"Pending profit {estimate.profit:,} base units, call fee {estimate.call_fee:,}")

report = strategy.harvest(keeper)
print(f"Minted {report.basket_minted:,} basket tokens, strategy balance now {strategy.balance_of():,}")
