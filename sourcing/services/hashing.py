import hashlib


def content_hash(data):
    """SHA-256 of the raw image bytes as lowercase hex.

    Only the bytes are hashed, never filenames or headers, so identical
    images always collide in the dedup ledger.
    """
    return hashlib.sha256(data).hexdigest()
