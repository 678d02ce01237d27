"""
Catena - Ledger interaction layer for Custodia.

Provides the async JSON-RPC client, the AccessControl contract ABI, and
transaction utilities used by the authoritative access registry.

Uses httpx + eth-account + eth-abi instead of the heavyweight web3.py.
"""
