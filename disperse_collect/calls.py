"""
Call builder: turns resolved transfer plans into signed-ready contract calls.

The builder is pure. It never talks to the node; everything it needs is the
resolved plan plus the deployed contract address from configuration.
"""
from typing import List, Optional, Sequence

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .access_list import DEFAULT_LAYOUT, Erc20StorageLayout, account_entries, merge_access_list, token_entry
from .contracts import (
    COLLECT_ERC20_ARGS, COLLECT_ERC20_SIGNATURE,
    DISPERSE_ERC20_ARGS, DISPERSE_ERC20_SIGNATURE,
    DISPERSE_ETH_ARGS, DISPERSE_ETH_SIGNATURE,
    ERC20_APPROVE_ARGS, ERC20_APPROVE_SIGNATURE,
    ERC20_TRANSFER_ARGS, ERC20_TRANSFER_SIGNATURE,
)
from .exceptions import UnsupportedOperationError
from .models import AccessListEntry, ContractCall, OperationKind, TransferPlan, plan_to_lists


def encode_call(signature: str, arg_types: Sequence[str], args: Sequence) -> bytes:
    """ABI-encode a function call: 4-byte selector followed by the arguments."""
    return function_signature_to_4byte_selector(signature) + encode(list(arg_types), list(args))


class CallBuilder:
    """
    Builds ContractCall objects for the disperse/collect contract and ERC20 tokens.

    Args:
        contract_address: Deployed disperse/collect contract
        layout: Storage layout assumed for tokens when deriving access lists
    """

    def __init__(self, contract_address: str, layout: Erc20StorageLayout = DEFAULT_LAYOUT):
        self.contract_address = to_checksum_address(contract_address)
        self.layout = layout

    def build(
        self,
        kind: OperationKind,
        plan: Optional[TransferPlan] = None,
        *,
        sender: Optional[str] = None,
        token: Optional[str] = None,
        spender: Optional[str] = None,
        recipient: Optional[str] = None,
        amount: Optional[int] = None,
    ) -> ContractCall:
        """
        Build the call for ``kind`` after checking the argument combination.

        Raises:
            UnsupportedOperationError: If the arguments do not fit the operation
        """
        if kind == OperationKind.DISPERSE_NATIVE:
            if token is not None:
                raise UnsupportedOperationError("disperse-native does not take a token address")
            return self.disperse_native(self._require_plan(kind, plan))
        if kind == OperationKind.DISPERSE_TOKEN:
            return self.disperse_token(
                self._require_plan(kind, plan),
                token=self._require(kind, "token", token),
                spender=self._require(kind, "spender", spender),
            )
        if kind == OperationKind.COLLECT_TOKEN:
            return self.collect_token(
                self._require_plan(kind, plan),
                token=self._require(kind, "token", token),
                recipient=self._require(kind, "recipient", recipient),
            )
        if kind == OperationKind.TRANSFER:
            return self.transfer(
                self._require(kind, "recipient", recipient),
                self._require(kind, "amount", amount),
                sender=self._require(kind, "sender", sender),
                token=token,
            )
        if kind == OperationKind.APPROVE:
            return self.approve(
                self._require(kind, "spender", spender),
                self._require(kind, "amount", amount),
                sender=self._require(kind, "sender", sender),
                token=self._require(kind, "token", token),
            )
        raise UnsupportedOperationError(f"unknown operation: {kind!r}")

    @staticmethod
    def _require(kind: OperationKind, name: str, value):
        if value is None:
            raise UnsupportedOperationError(f"{kind.value} requires a {name}")
        return value

    @staticmethod
    def _require_plan(kind: OperationKind, plan: Optional[TransferPlan]) -> TransferPlan:
        if not plan:
            raise UnsupportedOperationError(f"{kind.value} requires at least one transfer")
        return plan

    def disperse_native(self, plan: TransferPlan) -> ContractCall:
        """One payable call sending ``sum(plan)`` wei, split among the recipients."""
        addresses, amounts = plan_to_lists(plan)
        entries: List[AccessListEntry] = account_entries([self.contract_address, *addresses])
        return ContractCall(
            operation=OperationKind.DISPERSE_NATIVE,
            to=self.contract_address,
            data=encode_call(DISPERSE_ETH_SIGNATURE, DISPERSE_ETH_ARGS, [addresses, amounts]),
            value=sum(amounts),
            access_list=merge_access_list(entries),
        )

    def disperse_token(self, plan: TransferPlan, *, token: str, spender: str) -> ContractCall:
        """Move tokens from ``spender`` to every recipient through the contract's allowance."""
        addresses, amounts = plan_to_lists(plan)
        entries = account_entries([self.contract_address])
        entries.append(token_entry(
            token,
            holders=[spender, *addresses],
            allowances=[(spender, self.contract_address)],
            layout=self.layout,
        ))
        return ContractCall(
            operation=OperationKind.DISPERSE_TOKEN,
            to=self.contract_address,
            data=encode_call(DISPERSE_ERC20_SIGNATURE, DISPERSE_ERC20_ARGS, [spender, token, addresses, amounts]),
            access_list=merge_access_list(entries),
        )

    def collect_token(self, plan: TransferPlan, *, token: str, recipient: str) -> ContractCall:
        """Pull tokens from every spender in ``plan`` into ``recipient``."""
        spenders, amounts = plan_to_lists(plan)
        entries = account_entries([self.contract_address])
        entries.append(token_entry(
            token,
            holders=[*spenders, recipient],
            allowances=[(spender, self.contract_address) for spender in spenders],
            layout=self.layout,
        ))
        return ContractCall(
            operation=OperationKind.COLLECT_TOKEN,
            to=self.contract_address,
            data=encode_call(COLLECT_ERC20_SIGNATURE, COLLECT_ERC20_ARGS, [token, recipient, spenders, amounts]),
            access_list=merge_access_list(entries),
        )

    def transfer(self, recipient: str, amount: int, *, sender: str, token: Optional[str] = None) -> ContractCall:
        """Plain native transfer, or ERC20 ``transfer`` when a token is given."""
        entries = account_entries([sender, recipient])
        if token is None:
            return ContractCall(
                operation=OperationKind.TRANSFER,
                to=to_checksum_address(recipient),
                value=amount,
                access_list=merge_access_list(entries),
            )
        entries.append(token_entry(token, holders=[sender, recipient], layout=self.layout))
        return ContractCall(
            operation=OperationKind.TRANSFER,
            to=to_checksum_address(token),
            data=encode_call(ERC20_TRANSFER_SIGNATURE, ERC20_TRANSFER_ARGS, [recipient, amount]),
            access_list=merge_access_list(entries),
        )

    def approve(self, spender: str, amount: int, *, sender: str, token: str) -> ContractCall:
        """ERC20 ``approve`` of ``amount`` for ``spender``."""
        entries = account_entries([sender, spender])
        entries.append(token_entry(token, allowances=[(sender, spender)], layout=self.layout))
        return ContractCall(
            operation=OperationKind.APPROVE,
            to=to_checksum_address(token),
            data=encode_call(ERC20_APPROVE_SIGNATURE, ERC20_APPROVE_ARGS, [spender, amount]),
            access_list=merge_access_list(entries),
        )
