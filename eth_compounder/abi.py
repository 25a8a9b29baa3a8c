"""ABI loading from the bundled ABI fragments.

Provides functions to load ABI files and construct :py:class:`web3.contract.Contract` types.
The results are cached for the speedup.

Bundled files under ``eth_compounder/abi/`` are Etherscan style ABI lists
trimmed to the functions the strategy uses.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Type, Union

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

# How big are our ABI and contract caches
_CACHE_SIZE = 64

#: ERC-20 fragment
ERC20_ABI = "ERC20.json"

#: Uniswap v2 router fragment
UNISWAP_V2_ROUTER_ABI = "UniswapV2Router02.json"

#: MasterChef v2 style farm fragment
MASTERCHEF_ABI = "MasterChefV2.json"

#: Balancer v2 vault fragment
BALANCER_VAULT_ABI = "BalancerVault.json"

#: Strategist payment router fragment
PAYMENT_ROUTER_ABI = "PaymentRouter.json"


@lru_cache(maxsize=_CACHE_SIZE)
def get_abi_by_filename(fname: str) -> list:
    """Reads a embedded ABI file and returns it.

    Example::

        abi = get_abi_by_filename("ERC20.json")

    :param fname:
        File name under ``eth_compounder/abi``

    :return:
        ABI as a list of function descriptions
    """

    here = Path(__file__).resolve().parent
    abi_path = here / "abi" / Path(fname)
    with open(abi_path, "rt", encoding="utf-8") as f:
        abi = json.load(f)

    if isinstance(abi, dict):
        # Solc output
        abi = abi["abi"]

    return abi


@lru_cache(maxsize=_CACHE_SIZE)
def get_contract(web3: Web3, fname: str) -> Type[Contract]:
    """Get Contract proxy class from ABI JSON file.

    Any results are cached. Web3 connection is part of the cache key.
    """
    return web3.eth.contract(abi=get_abi_by_filename(fname))


def get_deployed_contract(
    web3: Web3,
    fname: str,
    address: Union[HexAddress, str],
) -> Contract:
    """Get a Contract proxy object for a contract deployed at a specific address.

    :param web3:
        Web3 instance

    :param fname:
        Bundled ABI file name

    :param address:
        Ethereum address of the deployed contract

    :return:
        `web3.contract.Contract` proxy
    """
    assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
    assert address, f"get_deployed_contract() address was None"

    address = Web3.to_checksum_address(address)
    Contract = get_contract(web3, fname)
    return Contract(address)
