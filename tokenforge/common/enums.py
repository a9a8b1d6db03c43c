"""
TokenForge 代币发行工具 — 枚举定义

状态记录的持久化值依赖这些枚举，不可随意修改。
"""

from enum import Enum


class Network(str, Enum):
    """目标网络"""
    MAINNET = "mainnet"
    DEVNET = "devnet"
    TESTNET = "testnet"
    LOCALHOST = "localhost"
    CUSTOM = "custom"      # 自定义 RPC 端点


class ProvisioningStep(str, Enum):
    """
    发行进度（状态机）

    严格全序：FRESH < MINT_CREATED < ACCOUNT_CREATED < ISSUED
    """
    FRESH = "fresh"
    MINT_CREATED = "mint_created"
    ACCOUNT_CREATED = "account_created"
    ISSUED = "issued"


class StepAction(str, Enum):
    """远端变更步骤"""
    CREATE_MINT = "create_mint"
    CREATE_HOLDING_ACCOUNT = "create_holding_account"
    ISSUE_SUPPLY = "issue_supply"


class ConfirmPrompt(str, Enum):
    """驱动层向操作员确认的问题"""
    REQUEST_FUNDING = "request_funding"
    PROCEED_WITHOUT_FUNDING = "proceed_without_funding"
