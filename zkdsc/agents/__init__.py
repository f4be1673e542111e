"""
Client-side helpers for account owners
"""

from .request_signer import create_request, owner_from_private_key, sign_request

__all__ = ["create_request", "owner_from_private_key", "sign_request"]
