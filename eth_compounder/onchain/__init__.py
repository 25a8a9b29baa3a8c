"""web3.py collaborators for running the strategy against a real or forked chain.

- Transactions are sent from the strategy account with ``Contract.functions.x().transact()``,
  so the account must be unlocked on the node or a signing middleware installed

- Swap and join outputs are measured as token balance deltas

- See :py:func:`eth_compounder.onchain.deployment.create_onchain_strategy`
"""
