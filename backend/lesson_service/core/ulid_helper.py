"""Primary-key generation."""

from ulid import ULID


def generate_ulid() -> str:
    """New lexicographically sortable 26-character id."""
    return str(ULID())
