"""
Amount resolution: turns recipient specifications into exact integer amounts.

Every function here is pure. Proportional shares are truncated (floor) and the
truncation remainder is never redistributed, so a plan never pays any entry
more than its exact share of the reference total.
"""
import logging
from typing import Mapping, Optional

from .exceptions import InsufficientTotalError, InvalidSpecError
from .models import AbsoluteAmount, FractionalAmount, RecipientSpec, TransferPlan

logger = logging.getLogger(__name__)


def resolve_amount(spec: RecipientSpec, total: int, address: Optional[str] = None) -> int:
    """
    Resolve a single recipient specification against a reference total.

    Args:
        spec: Absolute amount or fraction/units pair
        total: Reference total the fraction applies to
        address: Recipient the spec belongs to, used in error messages

    Returns:
        Resolved amount in base units

    Raises:
        InvalidSpecError: If units is zero or the fraction exceeds one
    """
    if isinstance(spec, AbsoluteAmount):
        return spec.amount
    if isinstance(spec, FractionalAmount):
        where = f" for {address}" if address else ""
        if spec.units == 0:
            raise InvalidSpecError(f"fraction {spec}{where} has zero units", address=address)
        if spec.fraction > spec.units:
            raise InvalidSpecError(
                f"fraction {spec}{where} exceeds the whole reference total", address=address
            )
        return total * spec.fraction // spec.units
    raise InvalidSpecError(f"unsupported recipient spec {type(spec).__name__}", address=address)


def _resolve_entries(specs: Mapping[str, RecipientSpec], totals: Mapping[str, int]) -> TransferPlan:
    if not specs:
        raise InvalidSpecError("at least one recipient is required")
    return {address: resolve_amount(spec, totals[address], address) for address, spec in specs.items()}


def resolve_plan(recipients: Mapping[str, RecipientSpec], total: int, owner: str) -> TransferPlan:
    """
    Resolve every recipient against one shared reference total.

    All entries are resolved before the sum is checked, so an oversized
    request fails with a single aggregate error.

    Args:
        recipients: Recipient specs keyed by address, in request order
        total: Shared reference total (balance or allowance of ``owner``)
        owner: Address whose funds are being moved

    Returns:
        Resolved amounts keyed by address, in request order

    Raises:
        InvalidSpecError: If the map is empty or any spec is invalid
        InsufficientTotalError: If the resolved sum exceeds ``total``
    """
    plan = _resolve_entries(recipients, {address: total for address in recipients})
    required = sum(plan.values())
    if required > total:
        raise InsufficientTotalError(owner, required=required, available=total)
    logger.debug(f"Resolved {len(plan)} transfers totalling {required} of {total} for {owner}")
    return plan


def resolve_per_reference(
    specs: Mapping[str, RecipientSpec],
    totals: Mapping[str, int],
    available: Optional[Mapping[str, int]] = None,
) -> TransferPlan:
    """
    Resolve specs where every address has its own reference total.

    Used when collecting: each spender's fraction applies to that spender's
    own balance, and each resolved amount must fit what can actually be
    moved from that spender.

    Args:
        specs: Specs keyed by address, in request order
        totals: Reference total per address
        available: Upper bound per address; defaults to ``totals``

    Returns:
        Resolved amounts keyed by address, in request order

    Raises:
        InvalidSpecError: If the map is empty or any spec is invalid
        InsufficientTotalError: For the first address (in request order) whose
            resolved amount exceeds its bound
    """
    plan = _resolve_entries(specs, totals)
    limits = available if available is not None else totals
    for address, amount in plan.items():
        if amount > limits[address]:
            raise InsufficientTotalError(address, required=amount, available=limits[address])
    return plan


def validate_specs(specs: Mapping[str, RecipientSpec]) -> None:
    """
    Check specs that can be rejected without knowing any reference total.

    Raises:
        InvalidSpecError: If the map is empty or any fraction is invalid
    """
    if not specs:
        raise InvalidSpecError("at least one recipient is required")
    for address, spec in specs.items():
        resolve_amount(spec, 0, address)
