"""
Data models for the disperse/collect service.

Request and response bodies are pydantic models; amounts travel as decimal
strings because token amounts routinely exceed 2**53 and must survive JSON
round trips without precision loss.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, AfterValidator, ConfigDict, Field, PlainSerializer
from web3 import Web3

UINT256_MAX = 2**256 - 1

# Fraction denominator used when a request omits "units" (percent)
DEFAULT_UNITS = 100


def _parse_amount(value: Any) -> int:
    """Accept decimal strings or plain JSON integers; reject everything else."""
    if isinstance(value, bool):
        raise ValueError("amount must be a decimal integer string")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise ValueError(f"amount must be a non-negative decimal integer string, got {value!r}")
        amount = int(text)
    else:
        raise ValueError(f"amount must be a decimal integer string, got {type(value).__name__}")
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")
    if amount > UINT256_MAX:
        raise ValueError("amount does not fit in uint256")
    return amount


def _checksum_address(value: str) -> str:
    if not Web3.is_address(value):
        raise ValueError(f"invalid address: {value!r}")
    return Web3.to_checksum_address(value)


TokenAmount = Annotated[int, BeforeValidator(_parse_amount), PlainSerializer(str, return_type=str)]
Address = Annotated[str, AfterValidator(_checksum_address)]

# Resolved amounts keyed by address, in request order
TransferPlan = Dict[str, int]


class AbsoluteAmount(BaseModel):
    """Fixed amount in base units"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    amount: TokenAmount


class FractionalAmount(BaseModel):
    """Share of a reference total: fraction / units"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    fraction: TokenAmount
    units: TokenAmount = DEFAULT_UNITS

    def __str__(self) -> str:
        return f"{self.fraction}/{self.units}"


RecipientSpec = Union[AbsoluteAmount, FractionalAmount]
def _unique_addresses(value: Any) -> Any:
    """Reject maps naming one address twice in different letter case."""
    if not isinstance(value, dict):
        return value
    seen: Dict[str, str] = {}
    for key in value:
        # Malformed keys are left to the Address validator
        if not isinstance(key, str) or not Web3.is_address(key):
            continue
        normalized = key.lower()
        if normalized in seen:
            raise ValueError(f"duplicate address {key!r} (already given as {seen[normalized]!r})")
        seen[normalized] = key
    return value


RecipientMap = Annotated[Dict[Address, RecipientSpec], BeforeValidator(_unique_addresses)]


class OperationKind(str, Enum):
    """Kinds of call the service can build."""
    DISPERSE_NATIVE = "disperse-native"
    DISPERSE_TOKEN = "disperse-token"
    COLLECT_TOKEN = "collect-token"
    TRANSFER = "transfer"
    APPROVE = "approve"


# ---- Requests ----

class DisperseEthRequest(BaseModel):
    caller: Address
    recipients: RecipientMap


class DisperseErc20Request(BaseModel):
    caller: Address
    spender: Address
    token: Address
    recipients: RecipientMap


class CollectErc20Request(BaseModel):
    caller: Address
    recipient: Address
    token: Address
    spenders: RecipientMap


class TransferRequest(BaseModel):
    caller: Address
    recipient: Address
    value: RecipientSpec
    token: Optional[Address] = None


class ApproveRequest(BaseModel):
    caller: Address
    spender: Address
    token: Address
    amount: RecipientSpec


# ---- Responses ----

class TransactionResponse(BaseModel):
    """Hash of a transaction accepted by the node"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="txHash")


class DisperseCollectResponse(BaseModel):
    """Submitted transaction plus the resolved amount per address"""
    tx: TransactionResponse
    transfers: Dict[str, TokenAmount]


class ErrorResponse(BaseModel):
    code: int
    message: str


# ---- Calls ----

@dataclass(frozen=True)
class AccessListEntry:
    """An account and the storage keys a transaction declares it will touch."""
    address: str
    storage_keys: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "storageKeys": list(self.storage_keys)}


@dataclass(frozen=True)
class ContractCall:
    """
    Outbound invocation ready to be signed.

    Attributes:
        operation: Kind of operation this call performs
        to: Target address (contract, token or plain recipient)
        data: ABI-encoded selector and arguments, empty for plain value transfers
        value: Native value to attach in wei
        access_list: Pre-computed EIP-2930 access list
    """
    operation: OperationKind
    to: str
    data: bytes = b""
    value: int = 0
    access_list: Tuple[AccessListEntry, ...] = field(default_factory=tuple)

    def to_transaction(self) -> Dict[str, Any]:
        """Render as a web3 transaction dict (without sender, nonce or fees)."""
        return {
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "value": self.value,
            "accessList": [entry.to_dict() for entry in self.access_list],
        }


@dataclass(frozen=True)
class SubmittedTransaction:
    """Result of a successful submission; no confirmation is awaited."""
    tx_hash: str
    sender: str
    nonce: int

    def to_response(self) -> TransactionResponse:
        return TransactionResponse(tx_hash=self.tx_hash)


def plan_to_lists(plan: TransferPlan) -> Tuple[List[str], List[int]]:
    """Split a plan into parallel address and amount lists, keeping order."""
    return list(plan.keys()), list(plan.values())
