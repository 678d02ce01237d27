__all__ = [
    # Errors
    "CustodiaError",
    "NotFound",
    "Expired",
    "Unauthorized",
    "InvalidPassword",
    "DecryptionFailure",
    "UpstreamUnavailable",
    # Configuration
    "Settings",
    # Crypto
    "encrypt",
    "decrypt",
    "password_digest",
    # Content store
    "ContentStore",
    "LocalContentStore",
    "IpfsContentStore",
    "compute_cid",
    # Registries
    "AccessGrant",
    "AccessRegistry",
    "GrantDetails",
    "LedgerRegistry",
    "LocalRegistry",
    # Share workflow
    "ShareHandle",
    "ShareInfo",
    "ShareWorkflow",
    "open_workflow",
    "parse_share_url",
    # ECDSA Identity
    "generate_eoa",
    "get_address",
    "load_private_key",
]

from .errors import (
    CustodiaError,
    DecryptionFailure,
    Expired,
    InvalidPassword,
    NotFound,
    Unauthorized,
    UpstreamUnavailable,
)
from .config import Settings
from .sigil.crypto import decrypt, encrypt, password_digest
from .sigil.eth import generate_eoa, get_address, load_private_key
from .arca.cid import compute_cid
from .arca.storage import ContentStore, IpfsContentStore, LocalContentStore
from .tabula.models import AccessGrant, AccessRegistry, GrantDetails
from .tabula.ledger import LedgerRegistry
from .tabula.local import LocalRegistry
from .share import ShareHandle, ShareInfo, ShareWorkflow, open_workflow, parse_share_url
