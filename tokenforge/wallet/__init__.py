"""钱包身份"""

from .keypair import Identity, generate_identity, identity_from_bytes, load_identity

__all__ = [
    "Identity",
    "generate_identity",
    "identity_from_bytes",
    "load_identity",
]
