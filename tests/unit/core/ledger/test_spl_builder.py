"""SPL Token 交易构建测试"""

import base64

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from tokenforge.common.exceptions import DataValidationError
from tokenforge.core.ledger.spl_builder import SplTransactionBuilder
from tokenforge.wallet.keypair import identity_from_bytes

BLOCKHASH = str(Hash.default())


@pytest.fixture
def wallet():
    return Keypair()


@pytest.fixture
def identity(wallet, tmp_path):
    return identity_from_bytes(bytes(wallet), tmp_path / "wallet.json")


@pytest.fixture
def builder():
    return SplTransactionBuilder()


def decode(built) -> Transaction:
    return Transaction.from_bytes(base64.b64decode(built.transaction))


class TestDeriveHoldingAccount:
    """关联持币账户地址"""

    def test_matches_associated_address(self, builder, wallet):
        mint = Keypair().pubkey()
        expected = get_associated_token_address(wallet.pubkey(), mint)
        assert builder.derive_holding_account(str(mint), str(wallet.pubkey())) == str(expected)

    def test_invalid_mint(self, builder, wallet):
        with pytest.raises(DataValidationError):
            builder.derive_holding_account("not-a-key", str(wallet.pubkey()))


class TestCreateMint:
    """创建铸币交易"""

    def test_signed_by_payer_and_mint(self, builder, identity, wallet):
        built = builder.build_create_mint(identity, 6, 1_461_600, BLOCKHASH)
        tx = decode(built)

        assert built.address is not None
        keys = tx.message.account_keys
        assert keys[0] == wallet.pubkey()
        assert Pubkey.from_string(built.address) in keys
        assert TOKEN_PROGRAM_ID in keys
        assert len(tx.signatures) == 2
        assert len(tx.message.instructions) == 2

    def test_new_mint_each_time(self, builder, identity):
        a = builder.build_create_mint(identity, 6, 1, BLOCKHASH)
        b = builder.build_create_mint(identity, 6, 1, BLOCKHASH)
        assert a.address != b.address

    def test_invalid_blockhash(self, builder, identity):
        with pytest.raises(DataValidationError):
            builder.build_create_mint(identity, 6, 1, "bad hash")


class TestHoldingAccount:
    """创建持币账户交易"""

    def test_address_is_associated_account(self, builder, identity, wallet):
        mint = Keypair().pubkey()
        built = builder.build_create_holding_account(str(mint), identity, BLOCKHASH)
        tx = decode(built)

        assert built.address == str(get_associated_token_address(wallet.pubkey(), mint))
        assert len(tx.signatures) == 1
        assert tx.message.account_keys[0] == wallet.pubkey()


class TestIssue:
    """发行交易"""

    def test_mint_to(self, builder, identity, wallet):
        mint = Keypair().pubkey()
        account = get_associated_token_address(wallet.pubkey(), mint)

        built = builder.build_issue(str(mint), str(account), 5_000_000_000, identity, BLOCKHASH)
        tx = decode(built)

        assert built.address is None
        assert len(tx.signatures) == 1
        assert len(tx.message.instructions) == 1
        keys = tx.message.account_keys
        assert mint in keys
        assert account in keys
        assert TOKEN_PROGRAM_ID in keys
