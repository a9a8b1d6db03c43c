"""
TokenForge 代币发行工具 — SPL Token 交易构建

基于 solders 和 spl.token 编码指令并签名：
    - 创建铸币：create_account + initialize_mint（冻结权限为钱包本身）
    - 创建关联持币账户：create_associated_token_account
    - 发行：mint_to
"""

import base64

from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from solders.transaction import Transaction
from spl.token.constants import MINT_LEN, TOKEN_PROGRAM_ID
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
)

from tokenforge.common.exceptions import DataValidationError, IdentityError
from tokenforge.common.logging import get_logger
from tokenforge.wallet.keypair import Identity

from .base import BuiltTransaction, TransactionBuilder

logger = get_logger(__name__)


def _keypair(identity: Identity) -> Keypair:
    try:
        return Keypair.from_bytes(identity.secret_key)
    except ValueError as e:
        raise IdentityError(
            f"无法用密钥签名: {identity.keypair_path}",
            details={"error": str(e)},
        ) from e


def _pubkey(address: str, label: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise DataValidationError(f"无效的{label}地址: {address}") from e


def _blockhash(recent_blockhash: str) -> Hash:
    try:
        return Hash.from_string(recent_blockhash)
    except ValueError as e:
        raise DataValidationError(f"无效的区块哈希: {recent_blockhash}") from e


def _serialize(tx: Transaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


class SplTransactionBuilder(TransactionBuilder):
    """SPL Token 交易构建器（默认实现）"""

    def __init__(self, token_program_id: Pubkey = TOKEN_PROGRAM_ID):
        self.token_program_id = token_program_id

    def derive_holding_account(self, mint: str, owner: str) -> str:
        return str(get_associated_token_address(_pubkey(owner, "所有者"), _pubkey(mint, "铸币")))

    def build_create_mint(
        self,
        authority: Identity,
        decimals: int,
        rent_lamports: int,
        recent_blockhash: str,
    ) -> BuiltTransaction:
        payer = _keypair(authority)
        mint = Keypair()

        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=payer.pubkey(),
                    to_pubkey=mint.pubkey(),
                    lamports=rent_lamports,
                    space=MINT_LEN,
                    owner=self.token_program_id,
                )
            ),
            initialize_mint(
                InitializeMintParams(
                    decimals=decimals,
                    program_id=self.token_program_id,
                    mint=mint.pubkey(),
                    mint_authority=payer.pubkey(),
                    freeze_authority=payer.pubkey(),
                )
            ),
        ]
        tx = Transaction.new_signed_with_payer(
            instructions,
            payer.pubkey(),
            [payer, mint],
            _blockhash(recent_blockhash),
        )

        logger.debug(f"已构建创建铸币交易: {mint.pubkey()}")
        return BuiltTransaction(transaction=_serialize(tx), address=str(mint.pubkey()))

    def build_create_holding_account(
        self,
        mint: str,
        owner: Identity,
        recent_blockhash: str,
    ) -> BuiltTransaction:
        payer = _keypair(owner)
        mint_key = _pubkey(mint, "铸币")

        instruction = create_associated_token_account(payer.pubkey(), payer.pubkey(), mint_key)
        tx = Transaction.new_signed_with_payer(
            [instruction],
            payer.pubkey(),
            [payer],
            _blockhash(recent_blockhash),
        )

        address = get_associated_token_address(payer.pubkey(), mint_key)
        return BuiltTransaction(transaction=_serialize(tx), address=str(address))

    def build_issue(
        self,
        mint: str,
        account: str,
        quantity: int,
        authority: Identity,
        recent_blockhash: str,
    ) -> BuiltTransaction:
        payer = _keypair(authority)

        instruction = mint_to(
            MintToParams(
                program_id=self.token_program_id,
                mint=_pubkey(mint, "铸币"),
                dest=_pubkey(account, "持币账户"),
                mint_authority=payer.pubkey(),
                amount=quantity,
            )
        )
        tx = Transaction.new_signed_with_payer(
            [instruction],
            payer.pubkey(),
            [payer],
            _blockhash(recent_blockhash),
        )
        return BuiltTransaction(transaction=_serialize(tx))
