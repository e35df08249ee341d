"""
Chain reader: the minimum on-chain state needed to resolve and validate a request.

Every read is a single synchronous round trip through web3.py. Nothing is
retried here; a failed read fails the request.
"""
import logging
from typing import Callable, Optional, TypeVar

import requests
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3Exception,
)

from ._rate_limited_log import rate_limited_log
from .contracts import ERC20_ABI
from .exceptions import (
    ChainError,
    ChainRejectedError,
    ChainUnavailableError,
    DisperseCollectError,
    TokenNotFoundError,
)

T = TypeVar('T')

logger = logging.getLogger(__name__)

# Errors that mean the node could not be reached or did not answer in time
TRANSPORT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    # 429/5xx from the RPC endpoint itself; node errors arrive as JSON-RPC responses
    requests.exceptions.HTTPError,
    ProviderConnectionError,
    TimeExhausted,
    ConnectionError,
    TimeoutError,
)


def make_web3(rpc_url: str, timeout: int = 30) -> Web3:
    """Create a Web3 instance bound to an HTTP JSON-RPC endpoint."""
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


def chain_error_from(exc: Exception, token: Optional[str] = None) -> ChainError:
    """
    Translate a web3/transport exception into a ChainError.

    Args:
        exc: Exception raised by web3.py or its HTTP transport
        token: Token being queried, if any; undecodable output from it
            means there is no ERC20 at that address

    Returns:
        ChainUnavailableError for transport failures, otherwise ChainRejectedError
    """
    if isinstance(exc, ChainError):
        return exc
    if isinstance(exc, BadFunctionCallOutput) and token is not None:
        return TokenNotFoundError(token)
    if isinstance(exc, ContractLogicError):
        return ChainRejectedError(f"execution reverted: {exc}")
    if isinstance(exc, TRANSPORT_ERRORS):
        return ChainUnavailableError(f"error communicating with node: {exc}")
    return ChainRejectedError(f"node rejected request: {exc}")


class ChainReader:
    """
    Reads balances and allowances from the node.

    Args:
        w3: Web3 instance connected to the node
        logger: Optional logger instance to use
    """

    def __init__(self, w3: Web3, logger: Optional[logging.Logger] = None):
        self.w3 = w3
        self.logger = logger or logging.getLogger(__name__)

    def _read(self, what: str, fn: Callable[[], T], token: Optional[str] = None) -> T:
        try:
            return fn()
        except DisperseCollectError:
            raise
        except (Web3Exception, ValueError, OSError, requests.exceptions.RequestException) as e:
            error = chain_error_from(e, token=token)
            if isinstance(error, ChainUnavailableError):
                self.logger.debug(f"Node unavailable while reading {what}: {e}")
                rate_limited_log(f"Node unavailable: {e}", logger_instance=self.logger)
            else:
                self.logger.warning(f"Node rejected read of {what}: {e}")
            raise error from e

    def _token(self, token: str):
        return self.w3.eth.contract(address=token, abi=ERC20_ABI)

    def native_balance(self, address: str) -> int:
        """
        Native balance of ``address`` in wei.

        Raises:
            ChainUnavailableError: If the node cannot be reached
            ChainRejectedError: If the node returns an error
        """
        return int(self._read(f"balance of {address}", lambda: self.w3.eth.get_balance(address)))

    def token_balance(self, token: str, owner: str) -> int:
        """``balanceOf(owner)`` on ``token``."""
        return int(self._read(
            f"{token} balance of {owner}",
            lambda: self._token(token).functions.balanceOf(owner).call(),
            token=token,
        ))

    def token_allowance(self, token: str, owner: str, spender: str) -> int:
        """``allowance(owner, spender)`` on ``token``."""
        return int(self._read(
            f"{token} allowance of {owner} for {spender}",
            lambda: self._token(token).functions.allowance(owner, spender).call(),
            token=token,
        ))

    def token_allowance_or_balance(self, token: str, owner: str, spender: Optional[str] = None) -> int:
        """Allowance of ``(owner, spender)`` when a spender is given, otherwise the owner's balance."""
        if spender is None:
            return self.token_balance(token, owner)
        return self.token_allowance(token, owner, spender)

    def token_available(self, token: str, owner: str, spender: str) -> int:
        """
        Amount ``spender`` can actually move out of ``owner``.

        This is the smaller of the owner's balance and the allowance granted
        to the spender.
        """
        allowance = self.token_allowance(token, owner, spender)
        balance = self.token_balance(token, owner)
        return min(allowance, balance)
