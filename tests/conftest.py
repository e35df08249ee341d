"""
Pytest fixtures for the disperse/collect tests.
"""
import pytest
from unittest.mock import MagicMock
from eth_account import Account
from eth_utils import keccak
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput

from disperse_collect._rate_limited_log import reset_rate_limits
from disperse_collect.calls import CallBuilder
from disperse_collect.chain import ChainReader
from disperse_collect.service import DisperseCollectService
from disperse_collect.submitter import SingleKeyPolicy, TransactionSubmitter

# Constants for testing; digit-only addresses are already in checksum form
TEST_RPC_URL = "https://rpc.example.com"
TEST_CONTRACT = "0x1234567890123456789012345678901234567890"
TEST_TOKEN = "0x3333333333333333333333333333333333333333"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_CHAIN_ID = 11155111  # Sepolia testnet ID
TEST_NONCE = 12
TEST_GAS_PRICE = 1000000000  # 1 gwei

ADDR_A = "0x1111111111111111111111111111111111111111"
ADDR_B = "0x2222222222222222222222222222222222222222"
ADDR_C = "0x4444444444444444444444444444444444444444"
ADDR_D = "0x5555555555555555555555555555555555555555"

ONE_UNIT = 10**18


class FakeChain:
    """
    In-memory chain state behind the mocked Web3 instance.

    Attributes:
        native: Native balance per address
        balances: Token balance per (token, owner)
        allowances: Token allowance per (token, owner, spender)
        sent: Raw transactions handed to send_raw_transaction
    """

    def __init__(self):
        self.native = {}
        self.balances = {}
        self.allowances = {}
        self.sent = []
        self.nonce = TEST_NONCE

    def token_contract(self, address, abi):
        known = any(key[0] == address for key in list(self.balances) + list(self.allowances))

        def balance_of(owner):
            fn = MagicMock()
            if not known:
                fn.call.side_effect = BadFunctionCallOutput("Could not decode contract function call")
            else:
                fn.call.return_value = self.balances.get((address, owner), 0)
            return fn

        def allowance(owner, spender):
            fn = MagicMock()
            if not known:
                fn.call.side_effect = BadFunctionCallOutput("Could not decode contract function call")
            else:
                fn.call.return_value = self.allowances.get((address, owner, spender), 0)
            return fn

        contract = MagicMock()
        contract.functions.balanceOf = MagicMock(side_effect=balance_of)
        contract.functions.allowance = MagicMock(side_effect=allowance)
        return contract

    def send_raw_transaction(self, raw_tx):
        self.sent.append(bytes(raw_tx))
        return keccak(bytes(raw_tx))


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Every test starts with an empty rate-limit cache"""
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def mock_w3(fake_chain):
    """Create a mock Web3 instance backed by FakeChain"""
    eth = MagicMock()
    eth.chain_id = TEST_CHAIN_ID
    eth.gas_price = TEST_GAS_PRICE
    eth.get_balance = MagicMock(side_effect=lambda address: fake_chain.native.get(address, 0))
    eth.get_transaction_count = MagicMock(side_effect=lambda address, block="latest": fake_chain.nonce)

    # Configure realistic gas estimation
    def estimate_gas(tx):
        base_gas = 21000
        data_gas = len(str(tx.get('data', ''))) * 16
        return base_gas + data_gas

    eth.estimate_gas = MagicMock(side_effect=estimate_gas)
    eth.send_raw_transaction = MagicMock(side_effect=fake_chain.send_raw_transaction)
    eth.contract = MagicMock(side_effect=fake_chain.token_contract)

    mock = MagicMock(spec=Web3)
    mock.eth = eth
    return mock


@pytest.fixture
def mock_account():
    """Create a deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def caller(mock_account):
    return mock_account.address


@pytest.fixture
def reader(mock_w3):
    return ChainReader(mock_w3)


@pytest.fixture
def builder():
    return CallBuilder(TEST_CONTRACT)


@pytest.fixture
def submitter(mock_w3):
    return TransactionSubmitter(mock_w3, SingleKeyPolicy.from_private_key(TEST_PRIV_KEY))


@pytest.fixture
def service(reader, builder, submitter):
    return DisperseCollectService(reader, builder, submitter)
