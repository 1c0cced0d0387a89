"""
Credential Hashing Module

Produces the opaque credential tokens stored on accounts. The ledger itself
only compares tokens; deriving them is the caller's job, and this module is
the helper an authentication front end uses for it.

Token format: "scrypt$<salt hex>$<digest hex>".
"""

import hashlib
import secrets
from typing import Optional

SCHEME = "scrypt"


def _generate_salt() -> str:
    """Generate random salt for credential hashing"""
    return secrets.token_hex(16)


def _derive(secret: str, salt: str) -> str:
    return hashlib.scrypt(
        secret.encode(),
        salt=salt.encode(),
        n=16384, r=8, p=1
    ).hex()


def hash_credential(secret: str, salt: Optional[str] = None) -> str:
    """
    Hash a plaintext credential into an opaque token

    Args:
        secret: Plaintext credential as typed by the user
        salt: Fixed salt (generated if not provided)

    Returns:
        Token to store as Account.credential_hash
    """
    if salt is None:
        salt = _generate_salt()
    return f"{SCHEME}${salt}${_derive(secret, salt)}"


def token_for(secret: str, stored_token: str) -> str:
    """
    Re-derive the token for a login attempt using the stored token's salt

    The result can be handed to Account.check_credential. An unparseable
    stored token yields an empty string, which never matches.
    """
    parts = stored_token.split("$")
    if len(parts) != 3 or parts[0] != SCHEME:
        return ""
    return hash_credential(secret, salt=parts[1])
