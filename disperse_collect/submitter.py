"""
Transaction submitter: signs a ContractCall with a configured key and sends it.

Nonces are read from the node right before signing and never cached, so two
submissions from the same key must not overlap. The submitter holds one lock
per signer address from the nonce read until the node has accepted the raw
transaction. Which key signs a call is decided by a KeySelectionPolicy.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from .chain import TRANSPORT_ERRORS, chain_error_from
from .exceptions import ChainUnavailableError, SigningError, SubmissionRejectedError
from .models import ContractCall, SubmittedTransaction

logger = logging.getLogger(__name__)

NODE_ERRORS = (Web3Exception, ValueError, OSError, requests.exceptions.RequestException)


class Signer(Protocol):
    """Protocol for signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


class KeySelectionPolicy(ABC):
    """
    Strategy deciding which configured key signs for a requested sender.
    """

    @abstractmethod
    def select(self, sender: str) -> Signer:
        """
        Return the signer for ``sender``.

        Raises:
            SigningError: If no configured key can sign for ``sender``
        """
        pass

    @abstractmethod
    def addresses(self) -> List[str]:
        """Addresses of every configured key."""
        pass


class SingleKeyPolicy(KeySelectionPolicy):
    """Policy for exactly one configured key."""

    def __init__(self, signer: Signer):
        self.signer = signer

    @classmethod
    def from_private_key(cls, priv_key: Optional[str]) -> "SingleKeyPolicy":
        """
        Build the policy from a hex private key.

        Raises:
            SigningError: If the key is missing or malformed
        """
        if not priv_key:
            raise SigningError("no signing key configured")
        try:
            account = Account.from_key(priv_key)
        except (ValueError, TypeError) as e:
            # Never include the key material itself in the message
            raise SigningError(f"invalid signing key: {type(e).__name__}") from e
        return cls(account)

    def select(self, sender: str) -> Signer:
        if sender.lower() != self.signer.address.lower():
            raise SigningError(f"no signer found for {sender}")
        return self.signer

    def addresses(self) -> List[str]:
        return [self.signer.address]


class SignerLocks:
    """One mutual-exclusion lock per signer address, created on first use."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, address: str) -> threading.Lock:
        key = address.lower()
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


class TransactionSubmitter:
    """
    Signs and submits contract calls.

    Args:
        w3: Web3 instance connected to the node
        policy: Key selection policy
        locks: Per-signer locks; share one instance between submitters that
            use the same keys
        gas_limit: Fixed gas limit; when None the gas is estimated
        gas_buffer: Multiplier applied to estimated gas
        logger: Optional logger instance to use
    """

    def __init__(
        self,
        w3: Web3,
        policy: KeySelectionPolicy,
        locks: Optional[SignerLocks] = None,
        gas_limit: Optional[int] = None,
        gas_buffer: float = 1.1,
        logger: Optional[logging.Logger] = None
    ):
        self.w3 = w3
        self.policy = policy
        self.locks = locks or SignerLocks()
        self.gas_limit = gas_limit
        self.gas_buffer = gas_buffer
        self.logger = logger or logging.getLogger(__name__)

    def submit(self, call: ContractCall, sender: str) -> SubmittedTransaction:
        """
        Sign ``call`` as ``sender`` and hand it to the node.

        Returns as soon as the node accepts the transaction; no receipt is
        awaited.

        Raises:
            SigningError: If no key matches ``sender`` or signing fails
            SubmissionRejectedError: If gas estimation reverts or the node
                refuses the transaction
            ChainUnavailableError: If the node cannot be reached
        """
        signer = self.policy.select(sender)
        address = signer.address

        with self.locks.lock_for(address):
            nonce = self._node("read nonce", lambda: self.w3.eth.get_transaction_count(address, "pending"))

            tx = call.to_transaction()
            tx["from"] = address
            tx["nonce"] = nonce
            tx["chainId"] = self._node("read chain id", lambda: self.w3.eth.chain_id)
            tx["gas"] = self._gas(tx)
            tx["gasPrice"] = self._node("read gas price", lambda: self.w3.eth.gas_price)

            try:
                signed = signer.sign_transaction(tx)
            except Exception as e:
                self.logger.error(f"Transaction signing failed: {e}")
                raise SigningError(f"Failed to sign transaction: {e}") from e

            try:
                tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            except TRANSPORT_ERRORS as e:
                raise ChainUnavailableError(f"error communicating with node: {e}") from e
            except NODE_ERRORS as e:
                reason = getattr(e, "message", None) or str(e)
                self.logger.error(f"Node rejected {call.operation.value} transaction: {reason}")
                raise SubmissionRejectedError(f"transaction rejected: {reason}", reason=reason) from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        self.logger.info(f"Transaction sent: {tx_hash_hex} ({call.operation.value}, nonce {nonce})")
        return SubmittedTransaction(tx_hash=tx_hash_hex, sender=address, nonce=nonce)

    def _gas(self, tx: Dict[str, Any]) -> int:
        if self.gas_limit is not None:
            return self.gas_limit
        try:
            estimate = self.w3.eth.estimate_gas(tx)
        except ContractLogicError as e:
            self.logger.error(f"Gas estimation reverted: {e}")
            raise SubmissionRejectedError(f"transaction would revert: {e}", reason=str(e)) from e
        except TRANSPORT_ERRORS as e:
            raise ChainUnavailableError(f"error communicating with node: {e}") from e
        except NODE_ERRORS as e:
            reason = getattr(e, "message", None) or str(e)
            raise SubmissionRejectedError(f"gas estimation failed: {reason}", reason=reason) from e
        gas = int(estimate * self.gas_buffer)
        self.logger.debug(f"Estimated gas: {estimate}, using {gas}")
        return gas

    def _node(self, what: str, fn):
        try:
            return fn()
        except NODE_ERRORS as e:
            self.logger.error(f"Failed to {what}: {e}")
            raise chain_error_from(e) from e
