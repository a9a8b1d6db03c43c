#!/usr/bin/env python
"""
代币发行命令行

用法:
    tokenforge --name "My Token" --symbol MTK --keypair ~/.config/solana/id.json
    tokenforge -n "My Token" -s MTK -k wallet.json -c testnet -d 6 -a 5000
    tokenforge -n "My Token" -s MTK -k wallet.json -u http://127.0.0.1:8899
    tokenforge -n "My Token" -s MTK -g -o wallets -w treasury

中途失败后使用相同的钱包和网络重新运行即可从上次完成的步骤继续。
"""

import argparse
import asyncio
import importlib
import sys
import time
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from tokenforge.common.config import Settings, load_settings
from tokenforge.common.constants import TokenBounds
from tokenforge.common.enums import ConfirmPrompt, Network, ProvisioningStep
from tokenforge.common.exceptions import (
    ConfigurationError,
    CorruptStateError,
    DataValidationError,
    FundingDeclinedError,
    IdentityError,
    InsufficientResourcesError,
    StateLockedError,
    StepFailedError,
    TokenForgeError,
)
from tokenforge.common.logging import get_logger, set_log_format
from tokenforge.common.models import NetworkTarget, ProvisioningParams
from tokenforge.common.utils import format_sol
from tokenforge.core.ledger.base import TransactionBuilder
from tokenforge.core.ledger.rpc import RpcLedgerClient
from tokenforge.core.service import ConfirmCallback, ProvisioningService, ProvisioningSummary
from tokenforge.core.state.storage import StateStore
from tokenforge.wallet.keypair import Identity, generate_identity, load_identity

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

DEFAULT_WALLET_DIR = "wallets"

Prompt = Callable[[str], str]

_bounds = TokenBounds()


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise argparse.ArgumentTypeError(f"无效的数量: {value}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenforge",
        description="在 Solana 网络上一步创建自定义代币（可中断恢复）",
    )
    parser.add_argument("-n", "--name", help="代币名称")
    parser.add_argument("-s", "--symbol", help="代币符号")
    parser.add_argument(
        "-d", "--decimals",
        type=int,
        default=_bounds.default_decimals,
        help=f"小数位数 (默认: {_bounds.default_decimals})",
    )
    parser.add_argument(
        "-a", "--amount",
        type=_decimal,
        default=Decimal(_bounds.default_supply),
        help=f"初始供应量 (默认: {_bounds.default_supply})",
    )
    parser.add_argument("-k", "--keypair", help="钱包密钥文件路径")
    parser.add_argument("-g", "--generate-wallet", action="store_true", help="生成新钱包")
    parser.add_argument(
        "-o", "--output",
        default=DEFAULT_WALLET_DIR,
        help=f"新钱包保存目录 (默认: {DEFAULT_WALLET_DIR})",
    )
    parser.add_argument("-w", "--wallet-name", help="新钱包名称 (默认: solana-wallet-<时间戳>)")
    parser.add_argument(
        "-c", "--cluster",
        choices=[n.value for n in Network if n != Network.CUSTOM],
        default=Network.DEVNET.value,
        help="Solana 网络 (默认: devnet)",
    )
    parser.add_argument("-u", "--url", help="自定义 RPC URL（优先于 --cluster）")
    parser.add_argument("--config-dir", default="config", help="配置目录 (默认: config)")
    parser.add_argument("--state-dir", help="状态文件目录（默认与密钥文件同目录）")
    parser.add_argument("-y", "--yes", action="store_true", help="对所有确认问题回答是")
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="日志格式（默认取配置文件）",
    )
    return parser


# ========================================
# 交互
# ========================================

def _ask_required(prompt: Prompt, message: str, field: str) -> str:
    value = prompt(message).strip()
    if not value:
        raise DataValidationError(f"{field}是必填项")
    return value


def resolve_params(args: argparse.Namespace, prompt: Prompt = input) -> ProvisioningParams:
    """补齐缺失的名称和符号后构建发行参数"""
    name = args.name or _ask_required(prompt, "请输入代币名称: ", "代币名称")
    symbol = args.symbol or _ask_required(prompt, "请输入代币符号: ", "代币符号")
    return ProvisioningParams(
        name=name,
        symbol=symbol,
        decimals=args.decimals,
        supply=args.amount,
    )


def _default_wallet_name() -> str:
    return f"solana-wallet-{int(time.time() * 1000)}"


def resolve_identity(args: argparse.Namespace, prompt: Prompt = input) -> Identity:
    """
    确定签名钱包

    --generate-wallet 生成新钱包，--keypair 加载现有钱包，
    都未指定时询问生成还是使用现有钱包。
    """
    if args.generate_wallet:
        return generate_identity(args.output, args.wallet_name or _default_wallet_name())
    if args.keypair:
        return load_identity(args.keypair)

    print("未指定钱包。请选择：")
    print("1. 生成新钱包")
    print("2. 使用现有钱包")
    choice = prompt("请选择 (1 或 2): ").strip()

    if choice == "1":
        output_dir = prompt(f"请输入钱包保存目录 (默认: {DEFAULT_WALLET_DIR}): ").strip()
        default_name = _default_wallet_name()
        name = prompt(f"请输入钱包名称 (默认: {default_name}): ").strip()
        return generate_identity(output_dir or DEFAULT_WALLET_DIR, name or default_name)

    path = _ask_required(prompt, "请输入现有钱包密钥文件路径: ", "钱包路径")
    return load_identity(path)


def make_confirm(assume_yes: bool, prompt: Prompt = input) -> ConfirmCallback:
    def confirm(kind: ConfirmPrompt, message: str) -> bool:
        if assume_yes:
            logger.info(f"自动确认: {kind.value}")
            return True
        return prompt(f"{message} (y/n): ").strip().lower() == "y"

    return confirm


# ========================================
# 组装
# ========================================

def load_builder(spec: str | None) -> TransactionBuilder | None:
    """
    按 module:attribute 加载交易构建组件

    attribute 可以是 TransactionBuilder 实例，或无参返回实例的类/工厂。
    """
    if not spec:
        return None

    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"交易构建组件格式应为 module:attribute，实际: {spec}")

    try:
        obj: Any = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"无法加载交易构建组件: {spec}", details={"error": str(e)}) from e

    if not isinstance(obj, TransactionBuilder) and callable(obj):
        obj = obj()
    if not isinstance(obj, TransactionBuilder):
        raise ConfigurationError(f"{spec} 不是 TransactionBuilder")
    return obj


def _already_issued(store: StateStore, identity: Identity, target: NetworkTarget) -> bool:
    try:
        state = store.load(identity, target)
    except CorruptStateError:
        return False
    return state is not None and state.step == ProvisioningStep.ISSUED


def print_summary(summary: ProvisioningSummary) -> None:
    if summary.already_complete:
        print("\n该代币此前已发行完成，本次未执行任何操作。")

    print("\n=============== 代币创建成功 ===============")
    print(f"代币名称: {summary.name}")
    print(f"代币符号: {summary.symbol}")
    print(f"铸币地址: {summary.mint}")
    print(f"小数位数: {summary.decimals}")
    print(f"初始供应量: {summary.supply}")
    print(f"持币账户: {summary.holding_account}")
    print(f"所有者钱包: {summary.owner}")
    print(f"网络: {summary.target}")
    print("============================================")
    if summary.executed_steps:
        print("本次执行步骤: " + ", ".join(step.value for step in summary.executed_steps))
    print("\n后续步骤:")
    print("1. 可通过 Metaplex 添加元数据 (https://docs.metaplex.com/)")
    print("2. 将代币添加到 Phantom 等钱包")
    if summary.explorer_url:
        print(f"3. 在区块浏览器查看: {summary.explorer_url}")


# ========================================
# 入口
# ========================================

async def run(
    args: argparse.Namespace,
    settings: Settings,
    prompt: Prompt = input,
) -> int:
    try:
        params = resolve_params(args, prompt)
        identity = resolve_identity(args, prompt)
        target = NetworkTarget.from_options(args.cluster, args.url)
        builder = load_builder(settings.ledger.builder)
    except ValidationError as e:
        print(f"参数错误: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (DataValidationError, IdentityError, ConfigurationError) as e:
        print(f"错误: {e.message}", file=sys.stderr)
        return EXIT_USAGE

    print(f"使用钱包: {identity.public_key}")

    store = StateStore(settings.storage.state_dir)
    if builder is None and not _already_issued(store, identity, target):
        print(
            "错误: 未配置交易构建组件（ledger.builder），无法创建代币",
            file=sys.stderr,
        )
        return EXIT_USAGE

    ledger = RpcLedgerClient(target, settings.ledger, builder=builder)
    print(f"连接 {target}: {ledger.endpoint}")
    service = ProvisioningService(ledger, identity, target, settings=settings, store=store)

    try:
        async with ledger:
            summary = await service.provision(params, make_confirm(args.yes, prompt))
    except FundingDeclinedError:
        print("已退出。请稍后重试或手动为钱包充值。")
        print(f"钱包地址: {identity.public_key}")
        return EXIT_OK
    except InsufficientResourcesError as e:
        print(f"错误: {e.message}", file=sys.stderr)
        required = e.details.get("required")
        if required is not None:
            print(f"至少需要 {format_sol(required)}，请为钱包充值后重试: {identity.public_key}", file=sys.stderr)
        return EXIT_FAILURE
    except StepFailedError as e:
        print(f"创建代币失败: {e.message}", file=sys.stderr)
        if e.retryable:
            print("进度已保存，重新运行将从该步骤继续。", file=sys.stderr)
        return EXIT_FAILURE
    except StateLockedError as e:
        print(f"错误: {e.message}", file=sys.stderr)
        return EXIT_FAILURE
    except TokenForgeError as e:
        print(f"创建代币失败: {e.message}", file=sys.stderr)
        return EXIT_FAILURE

    print_summary(summary)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    overrides: dict[str, Any] = {}
    if args.state_dir:
        overrides["storage"] = {"state_dir": args.state_dir}
    if args.log_format:
        overrides["log_format"] = args.log_format

    try:
        settings = load_settings(args.config_dir, overrides)
    except ConfigurationError as e:
        print(f"配置错误: {e.message}", file=sys.stderr)
        return EXIT_USAGE

    set_log_format(settings.log_format)

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("\n已中断，进度已保存到最后完成的步骤。", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
