"""
TokenForge 代币发行工具 — 常量定义
"""

from dataclasses import dataclass

from .enums import Network

LAMPORTS_PER_SOL: int = 1_000_000_000

# 账本余额字段为 u64
U64_MAX: int = 2 ** 64 - 1


@dataclass(frozen=True)
class TokenBounds:
    """代币参数边界"""
    min_decimals: int = 0
    max_decimals: int = 9
    default_decimals: int = 9
    default_supply: int = 1_000_000
    max_symbol_length: int = 10


@dataclass(frozen=True)
class FundingDefaults:
    """资金默认值（lamports）"""
    min_balance: int = 10_000_000              # 0.01 SOL，执行任一远端步骤的下限
    funding_threshold: int = LAMPORTS_PER_SOL  # 低于 1 SOL 时建议申请空投
    funding_amount: int = LAMPORTS_PER_SOL


DEFAULT_ENDPOINTS: dict[Network, str] = {
    Network.MAINNET: "https://api.mainnet-beta.solana.com",
    Network.DEVNET: "https://api.devnet.solana.com",
    Network.TESTNET: "https://api.testnet.solana.com",
    Network.LOCALHOST: "http://localhost:8899",
}

# 可申请空投的网络
FUNDING_NETWORKS: frozenset[Network] = frozenset({
    Network.DEVNET,
    Network.TESTNET,
    Network.LOCALHOST,
})

EXPLORER_BASE_URL = "https://explorer.solana.com/address/"

EXPLORER_CLUSTER_PARAMS: dict[Network, str] = {
    Network.MAINNET: "",  # 浏览器默认主网
    Network.DEVNET: "?cluster=devnet",
    Network.TESTNET: "?cluster=testnet",
    Network.LOCALHOST: "?cluster=custom&customUrl=http%3A%2F%2Flocalhost%3A8899",
    Network.CUSTOM: "",   # 自定义端点无法直接链接
}

STATE_FILE_MARKER = "-token-state-"

# 默认交易构建组件（module:attribute）
DEFAULT_TRANSACTION_BUILDER = "tokenforge.core.ledger.spl_builder:SplTransactionBuilder"
