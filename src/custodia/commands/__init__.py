"""
Command implementations for the Custodia CLI.

- init:    Create the wallet identity and default configuration
- share:   Encrypt, upload and register a time-limited share
- open:    Verify a share and print / save its content
- inspect: Show a share's owner, expiry and password requirement
- revoke:  Deactivate a share early (owner only)
- extend:  Push a share's expiry back (owner only)
- logs:    List local access records
"""
