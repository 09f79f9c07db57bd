"""Prefixed ID generation utility."""

import secrets


def generate_id(prefix: str, nbytes: int = 8) -> str:
    """Return ``prefix`` followed by ``2 * nbytes`` random hex characters.

    >>> generate_id("ntf_").startswith("ntf_")
    True
    """
    return f"{prefix}{secrets.token_hex(nbytes)}"
