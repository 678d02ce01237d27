"""
Arca - Content-addressed storage for shared payloads.

Blobs are immutable and keyed by their CID; the same bytes always get the
same id, so uploads are idempotent.
"""
