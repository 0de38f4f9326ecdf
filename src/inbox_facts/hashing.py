"""
Content fingerprints and stable vector identities.

Both are pure functions over message fields. The fingerprint is only a
change-detection flag stored next to the message; the vector id is the
storage key of the message in the vector index and must never change for
the same (store_id, entry_id) pair.
"""

import hashlib


def content_fingerprint(subject: str, sender: str, body: str) -> str:
    """
    SHA-256 of subject, sender and body concatenated in that order.

    Returns:
        Lowercase hex digest (64 characters)
    """
    digest = hashlib.sha256()
    digest.update(subject.encode("utf-8"))
    digest.update(sender.encode("utf-8"))
    digest.update(body.encode("utf-8"))
    return digest.hexdigest()


def stable_vector_id(store_id: str, entry_id: str) -> int:
    """
    Derive the 64-bit vector-store id for a message.

    SHA-256 of store_id followed by entry_id, first 8 bytes read as a
    little-endian unsigned integer. Independent of the relational id so
    the record survives relational rows being recreated.
    """
    digest = hashlib.sha256()
    digest.update(store_id.encode("utf-8"))
    digest.update(entry_id.encode("utf-8"))
    return int.from_bytes(digest.digest()[:8], byteorder="little", signed=False)
