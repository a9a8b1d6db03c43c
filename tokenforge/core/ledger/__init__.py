"""账本接口"""

from .base import BuiltTransaction, LedgerClient, TransactionBuilder
from .endpoints import explorer_url, resolve_endpoint
from .rpc import RpcLedgerClient
from .spl_builder import SplTransactionBuilder

__all__ = [
    "BuiltTransaction",
    "LedgerClient",
    "TransactionBuilder",
    "explorer_url",
    "resolve_endpoint",
    "RpcLedgerClient",
    "SplTransactionBuilder",
]
