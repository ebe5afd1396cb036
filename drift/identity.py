"""Random prefixed identifiers, e.g. ``run_a3f9c2d18b0e4f71``."""

from __future__ import annotations

import secrets

from drift.errors import IdentityError


def new_id(prefix: str) -> str:
    """Return ``prefix`` joined to 8 random bytes in hex; raises IdentityError if entropy is unavailable."""
    try:
        token = secrets.token_bytes(8)
    except OSError as exc:
        raise IdentityError(f"new_id {prefix}: {exc}") from exc
    return f"{prefix}_{token.hex()}"
