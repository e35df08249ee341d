"""
Disperse/collect service: spread or gather native value and ERC20 tokens
across many addresses with a single contract call.
"""
from .version import __version__
from .models import (
    AbsoluteAmount, FractionalAmount, RecipientSpec, ContractCall, AccessListEntry,
    SubmittedTransaction, OperationKind, TransferPlan,
)
from .exceptions import (
    DisperseCollectError, ConfigError, InvalidSpecError, InsufficientTotalError,
    ChainError, ChainUnavailableError, ChainRejectedError, TokenNotFoundError,
    UnsupportedOperationError, SigningError, SubmissionRejectedError,
)
from .resolver import resolve_amount, resolve_plan, resolve_per_reference, validate_specs
from .chain import ChainReader
from .calls import CallBuilder
from .submitter import KeySelectionPolicy, SingleKeyPolicy, SignerLocks, TransactionSubmitter
from .service import DisperseCollectService
from .config import AppConfig

__all__ = [
    "__version__",
    "AbsoluteAmount",
    "FractionalAmount",
    "RecipientSpec",
    "ContractCall",
    "AccessListEntry",
    "SubmittedTransaction",
    "OperationKind",
    "TransferPlan",
    "DisperseCollectError",
    "ConfigError",
    "InvalidSpecError",
    "InsufficientTotalError",
    "ChainError",
    "ChainUnavailableError",
    "ChainRejectedError",
    "TokenNotFoundError",
    "UnsupportedOperationError",
    "SigningError",
    "SubmissionRejectedError",
    "resolve_amount",
    "resolve_plan",
    "resolve_per_reference",
    "validate_specs",
    "ChainReader",
    "CallBuilder",
    "KeySelectionPolicy",
    "SingleKeyPolicy",
    "SignerLocks",
    "TransactionSubmitter",
    "DisperseCollectService",
    "AppConfig",
]
