"""
Error taxonomy shared by every registry, store and the share workflow.

Registry-originated errors are authoritative: the workflow re-raises them
untouched.  ``exit_code`` is what the CLI exits with.
"""

from __future__ import annotations


class CustodiaError(RuntimeError):
    exit_code: int = 1


class NotFound(CustodiaError):
    exit_code = 2


class Expired(CustodiaError):
    exit_code = 3


class Unauthorized(CustodiaError):
    exit_code = 4


class InvalidPassword(CustodiaError):
    exit_code = 5


class DecryptionFailure(CustodiaError):
    exit_code = 6


class UpstreamUnavailable(CustodiaError):
    """Transport failure talking to the ledger or the content store.

    Retryable by the caller; never converted into a success.
    """

    exit_code = 7
