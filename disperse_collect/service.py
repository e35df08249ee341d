"""
DisperseCollectService - orchestration of the disperse/collect endpoints.

Every operation runs the same stages in order:

    VALIDATE -> READ_REFERENCE -> RESOLVE_AMOUNTS -> BUILD_CALL -> SUBMIT

Nothing reaches the chain before SUBMIT, so a failure at any stage leaves no
on-chain state behind and the error is re-raised unchanged.
"""
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from .calls import CallBuilder
from .chain import ChainReader, make_web3
from .config import AppConfig
from .exceptions import InsufficientTotalError, InvalidSpecError
from .models import (
    AbsoluteAmount,
    ApproveRequest,
    CollectErc20Request,
    DisperseCollectResponse,
    DisperseErc20Request,
    DisperseEthRequest,
    OperationKind,
    RecipientSpec,
    TransactionResponse,
    TransferPlan,
    TransferRequest,
)
from .resolver import resolve_amount, resolve_per_reference, resolve_plan, validate_specs
from .submitter import SingleKeyPolicy, TransactionSubmitter


class Stage(str, Enum):
    VALIDATE = "validate"
    READ_REFERENCE = "read-reference"
    RESOLVE_AMOUNTS = "resolve-amounts"
    BUILD_CALL = "build-call"
    SUBMIT = "submit"


class DisperseCollectService:
    """
    Runs the disperse/collect operations against one deployed contract.

    Args:
        reader: Chain reader for balances and allowances
        builder: Call builder bound to the deployed contract
        submitter: Transaction submitter holding the signing keys
        logger: Optional logger instance to use
    """

    def __init__(
        self,
        reader: ChainReader,
        builder: CallBuilder,
        submitter: TransactionSubmitter,
        logger: Optional[logging.Logger] = None
    ):
        self.reader = reader
        self.builder = builder
        self.submitter = submitter
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: AppConfig, w3=None) -> "DisperseCollectService":
        """
        Wire reader, builder and submitter from configuration.

        Args:
            config: Service configuration
            w3: Web3 instance to use instead of one built from ``config.rpc_url``

        Raises:
            SigningError: If the configured signing key is invalid
        """
        if w3 is None:
            w3 = make_web3(config.rpc_url, timeout=config.rpc_timeout)
        policy = SingleKeyPolicy.from_private_key(config.tx_signer)
        return cls(
            reader=ChainReader(w3),
            builder=CallBuilder(config.contract_address),
            submitter=TransactionSubmitter(w3, policy, gas_limit=config.gas_limit),
        )

    @property
    def contract_address(self) -> str:
        return self.builder.contract_address

    @contextmanager
    def _stage(self, operation: OperationKind, stage: Stage) -> Iterator[None]:
        self.logger.debug(f"{operation.value}: {stage.value}")
        try:
            yield
        except Exception as e:
            self.logger.warning(f"{operation.value} failed at {stage.value}: {e}")
            raise

    def _respond(self, operation: OperationKind, plan: TransferPlan, call, sender: str) -> DisperseCollectResponse:
        with self._stage(operation, Stage.SUBMIT):
            submitted = self.submitter.submit(call, sender)
        return DisperseCollectResponse(tx=submitted.to_response(), transfers=dict(plan))

    def disperse_eth(self, request: DisperseEthRequest) -> DisperseCollectResponse:
        """Send native value from the caller to every recipient in one call."""
        op = OperationKind.DISPERSE_NATIVE
        with self._stage(op, Stage.VALIDATE):
            validate_specs(request.recipients)
        with self._stage(op, Stage.READ_REFERENCE):
            balance = self.reader.native_balance(request.caller)
        with self._stage(op, Stage.RESOLVE_AMOUNTS):
            plan = resolve_plan(request.recipients, balance, owner=request.caller)
        with self._stage(op, Stage.BUILD_CALL):
            call = self.builder.build(op, plan)
        return self._respond(op, plan, call, request.caller)

    def disperse_erc20(self, request: DisperseErc20Request) -> DisperseCollectResponse:
        """
        Move tokens from ``spender`` to every recipient.

        Fractions apply to what the contract can move out of the spender:
        the smaller of the spender's balance and its allowance to the contract.
        """
        op = OperationKind.DISPERSE_TOKEN
        with self._stage(op, Stage.VALIDATE):
            validate_specs(request.recipients)
        with self._stage(op, Stage.READ_REFERENCE):
            available = self.reader.token_available(request.token, request.spender, self.contract_address)
        with self._stage(op, Stage.RESOLVE_AMOUNTS):
            plan = resolve_plan(request.recipients, available, owner=request.spender)
        with self._stage(op, Stage.BUILD_CALL):
            call = self.builder.build(op, plan, token=request.token, spender=request.spender)
        return self._respond(op, plan, call, request.caller)

    def collect_erc20(self, request: CollectErc20Request) -> DisperseCollectResponse:
        """
        Pull tokens from every spender into ``recipient``.

        Each spender's fraction applies to that spender's own balance; the
        resolved amount must also fit within its allowance to the contract.
        """
        op = OperationKind.COLLECT_TOKEN
        with self._stage(op, Stage.VALIDATE):
            validate_specs(request.spenders)
        balances = {}
        available = {}
        with self._stage(op, Stage.READ_REFERENCE):
            for spender in request.spenders:
                allowance = self.reader.token_allowance(request.token, spender, self.contract_address)
                balances[spender] = self.reader.token_balance(request.token, spender)
                available[spender] = min(allowance, balances[spender])
        with self._stage(op, Stage.RESOLVE_AMOUNTS):
            plan = resolve_per_reference(request.spenders, balances, available)
        with self._stage(op, Stage.BUILD_CALL):
            call = self.builder.build(op, plan, token=request.token, recipient=request.recipient)
        return self._respond(op, plan, call, request.caller)

    def transfer(self, request: TransferRequest) -> TransactionResponse:
        """Plain native or ERC20 transfer of an absolute amount from the caller."""
        op = OperationKind.TRANSFER
        with self._stage(op, Stage.VALIDATE):
            amount = self._absolute(request.value, request.recipient)
        with self._stage(op, Stage.READ_REFERENCE):
            if request.token is None:
                balance = self.reader.native_balance(request.caller)
            else:
                balance = self.reader.token_balance(request.token, request.caller)
            if amount > balance:
                raise InsufficientTotalError(request.caller, required=amount, available=balance)
        with self._stage(op, Stage.BUILD_CALL):
            call = self.builder.build(
                op, sender=request.caller, recipient=request.recipient, amount=amount, token=request.token
            )
        with self._stage(op, Stage.SUBMIT):
            return self.submitter.submit(call, request.caller).to_response()

    def approve(self, request: ApproveRequest) -> TransactionResponse:
        """ERC20 approve of an absolute amount for ``spender``."""
        op = OperationKind.APPROVE
        with self._stage(op, Stage.VALIDATE):
            amount = self._absolute(request.amount, request.spender)
        with self._stage(op, Stage.BUILD_CALL):
            call = self.builder.build(
                op, sender=request.caller, spender=request.spender, amount=amount, token=request.token
            )
        with self._stage(op, Stage.SUBMIT):
            return self.submitter.submit(call, request.caller).to_response()

    @staticmethod
    def _absolute(spec: RecipientSpec, address: str) -> int:
        if not isinstance(spec, AbsoluteAmount):
            raise InvalidSpecError(f"only absolute amounts are accepted here, got fraction {spec}", address=address)
        return resolve_amount(spec, spec.amount, address)
