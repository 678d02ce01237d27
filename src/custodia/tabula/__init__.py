"""
Tabula - Access-grant registries.

- ledger: authoritative registry on the AccessControl contract
- local:  JSON-file fallback with the identical contract and errors
- models: AccessGrant, GrantDetails and the AccessRegistry protocol
"""
