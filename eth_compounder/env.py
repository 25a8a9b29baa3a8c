"""Read configuration from environment variables."""

import os

from eth_compounder.onchain.transact import DEFAULT_GAS_LIMIT


def read_json_rpc_url(env_var: str = "JSON_RPC_URL") -> str:
    """Read JSON-RPC URL from environment variable.

    :raises ValueError: If the environment variable is not set.
    """
    json_rpc_url = os.environ.get(env_var)
    if not json_rpc_url:
        raise ValueError(f"Environment variable {env_var} is not set")
    return json_rpc_url


def read_gas_limit(env_var: str = "COMPOUNDER_GAS_LIMIT") -> int:
    """Per transaction gas limit, default if not set."""
    value = os.environ.get(env_var)
    if not value:
        return DEFAULT_GAS_LIMIT
    try:
        gas_limit = int(value)
    except ValueError as e:
        raise ValueError(f"Environment variable {env_var} is not an integer: {value}") from e
    assert gas_limit > 0, f"Bad gas limit {gas_limit}"
    return gas_limit
