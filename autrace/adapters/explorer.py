"""
Canonicalization adapter.

Turns a block-explorer zkApp transaction (camelCase JSON, one entry per
updated account plus a parallel failures list) into the canonical
OperationRecord list the engines consume. Already-canonical payloads pass
through.

Malformed payloads never raise: validation problems are logged and produce a
transaction with no account updates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from autrace.base.config import AdapterConfig, get_config
from autrace.errors import AutraceError, handle_error
from autrace.model.records import DEFAULT_RESOURCE_ID, AuthorizationKind, OperationRecord
from autrace.model.values import OpaqueToken

logger = logging.getLogger(__name__)

NANOMINA_PER_MINA = Decimal(10) ** 9

_PROOF_PERMISSIONS = ("editState", "send")
_SIGNATURE_PERMISSIONS = ("incrementNonce", "setDelegate")
_OPTIONAL_UPDATE_FIELDS = (
    ("tokenSymbol", "token_symbol"),
    ("delegate", "delegatee"),
    ("timing", "timing"),
    ("votingFor", "voting_for"),
    ("zkappUri", "zkapp_uri"),
)


# ============================================================================
# Explorer payload models
# ============================================================================

class _ExplorerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ExplorerUpdate(_ExplorerModel):
    app_state: List[Any] = Field(default_factory=list, alias="appState")
    permissions: Dict[str, Any] = Field(default_factory=dict)
    verification_key: Optional[Any] = Field(default=None, alias="verificationKey")
    token_symbol: Optional[str] = Field(default=None, alias="tokenSymbol")
    delegatee: Optional[str] = None
    timing: Optional[Any] = None
    voting_for: Optional[str] = Field(default=None, alias="votingFor")
    zkapp_uri: Optional[str] = Field(default=None, alias="zkappUri")

    @field_validator("app_state", mode="before")
    @classmethod
    def _list_or_empty(cls, v: Any) -> List[Any]:
        return list(v) if isinstance(v, (list, tuple)) else []

    @field_validator("permissions", mode="before")
    @classmethod
    def _dict_or_empty(cls, v: Any) -> Dict[str, Any]:
        return dict(v) if isinstance(v, Mapping) else {}


class ExplorerAccount(_ExplorerModel):
    account_address: str = Field(alias="accountAddress")
    is_zkapp_account: bool = Field(default=False, alias="isZkappAccount")
    call_depth: int = Field(default=0, ge=0, alias="callDepth")
    token_id: Optional[str] = Field(default=None, alias="tokenId")
    total_balance_change: Decimal = Field(default=Decimal(0), alias="totalBalanceChange")
    call_data: Optional[str] = Field(default=None, alias="callData")
    increment_nonce: bool = Field(default=False, alias="incrementNonce")
    verification_key_hash: Optional[str] = Field(default=None, alias="verificationKeyHash")
    update: Optional[ExplorerUpdate] = None

    @field_validator("call_data", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("call_depth", mode="before")
    @classmethod
    def _depth_default(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("total_balance_change", mode="before")
    @classmethod
    def _balance_default(cls, v: Any) -> Any:
        return 0 if v is None else v


class ExplorerFailure(_ExplorerModel):
    index: int
    failure_reason: Optional[str] = Field(default=None, alias="failureReason")

    @field_validator("failure_reason", mode="before")
    @classmethod
    def _join_reasons(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            return ", ".join(str(x) for x in v)
        return str(v)


class ExplorerTransaction(_ExplorerModel):
    tx_hash: Optional[str] = Field(default=None, alias="txHash")
    tx_status: Optional[str] = Field(default=None, alias="txStatus")
    block_height: Optional[int] = Field(default=None, alias="blockHeight")
    timestamp: Optional[Union[int, str]] = None
    fee: Optional[Decimal] = None
    fee_payer_address: Optional[str] = Field(default=None, alias="feePayerAddress")
    memo: Optional[str] = None
    updated_accounts: List[ExplorerAccount] = Field(default_factory=list, alias="updatedAccounts")
    failures: List[ExplorerFailure] = Field(default_factory=list)

    @field_validator("updated_accounts", "failures", mode="before")
    @classmethod
    def _list_or_empty(cls, v: Any) -> List[Any]:
        return list(v) if isinstance(v, (list, tuple)) else []


# ============================================================================
# Canonical result
# ============================================================================

@dataclass
class CanonicalTransaction:
    account_updates: List[OperationRecord] = field(default_factory=list)
    tx_hash: Optional[str] = None
    block_height: Optional[int] = None
    memo: str = ""
    status: Optional[str] = None
    fee: Optional[Decimal] = None
    fee_payer_address: Optional[str] = None
    timestamp: Optional[Union[int, str]] = None
    failures: List[Dict[str, Any]] = field(default_factory=list)


def _to_base_units(amount: Decimal) -> int:
    try:
        return int((amount * NANOMINA_PER_MINA).to_integral_value())
    except InvalidOperation:
        return 0


def _authorization_kind(permissions: Mapping[str, Any]) -> AuthorizationKind:
    if any(permissions.get(p) == "proof" for p in _PROOF_PERMISSIONS):
        return AuthorizationKind.PROOF
    if any(permissions.get(p) == "signature" for p in _SIGNATURE_PERMISSIONS):
        return AuthorizationKind.SIGNATURE
    return AuthorizationKind.NONE


def _account_to_record(
    account: ExplorerAccount,
    index: int,
    tx: ExplorerTransaction,
    failures: Mapping[int, Optional[str]],
    config: AdapterConfig,
) -> OperationRecord:
    update = account.update or ExplorerUpdate()
    auth = _authorization_kind(update.permissions)
    is_contract = account.is_zkapp_account or update.verification_key is not None or auth is AuthorizationKind.PROOF

    short = account.account_address[: config.label_address_length]
    label = f"Contract-{short}" if is_contract else f"Account-{short}"

    balance = _to_base_units(account.total_balance_change)
    body_update: Dict[str, Any] = {
        "appState": [str(s) if s else "0" for s in update.app_state],
        "permissions": {k: str(v) for k, v in update.permissions.items()},
        "verificationKey": {
            "hash": account.verification_key_hash,
            "data": update.verification_key,
        },
    }
    for key, attr in _OPTIONAL_UPDATE_FIELDS:
        value = getattr(update, attr)
        if value:
            body_update[key] = value

    authorization: Dict[str, Any] = {}
    if auth is AuthorizationKind.PROOF:
        authorization["proof"] = True
    elif auth is AuthorizationKind.SIGNATURE:
        authorization["signature"] = True

    body = {
        "publicKey": OpaqueToken.public_key(account.account_address),
        "tokenId": account.token_id,
        "balanceChange": {
            "magnitude": str(abs(balance)),
            "sgn": "Negative" if balance < 0 else "Positive",
        },
        "callDepth": account.call_depth,
        "callData": account.call_data if account.call_data is not None else "0",
        "incrementNonce": account.increment_nonce,
        "isZkappAccount": account.is_zkapp_account,
        "authorization": authorization,
        "update": body_update,
    }

    resource_id = account.token_id or DEFAULT_RESOURCE_ID
    if resource_id == config.native_token_id:
        resource_id = DEFAULT_RESOURCE_ID

    return OperationRecord(
        id=f"{tx.tx_hash or 'tx'}-{index}",
        label=label,
        call_depth=account.call_depth,
        resource_id=resource_id,
        authorization_kind=auth,
        failed=index in failures,
        failure_reason=failures.get(index),
        body=body,
    )


def adapt_explorer_transaction(
    payload: Any,
    config: Optional[AdapterConfig] = None,
) -> CanonicalTransaction:
    """Canonicalize a block-explorer transaction; malformed input -> no account updates."""
    cfg = config or get_config().adapter
    if not isinstance(payload, Mapping):
        logger.warning(f"[Adapter] Expected a mapping, got {type(payload).__name__}; no account updates")
        return CanonicalTransaction()

    try:
        tx = ExplorerTransaction.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"[Adapter] Explorer payload rejected ({exc.error_count()} error(s)); no account updates")
        return CanonicalTransaction(tx_hash=payload.get("txHash") if isinstance(payload.get("txHash"), str) else None)

    count = len(tx.updated_accounts)
    failures: Dict[int, Optional[str]] = {}
    for failure in tx.failures:
        position = failure.index - cfg.failure_index_base
        if 0 <= position < count:
            failures[position] = failure.failure_reason
        else:
            logger.debug(f"[Adapter] Ignoring failure with out-of-range index {failure.index}")

    records = [
        _account_to_record(account, i, tx, failures, cfg)
        for i, account in enumerate(tx.updated_accounts)
    ]
    logger.info(f"[Adapter] Canonicalized {len(records)} account updates ({len(failures)} failed) for {tx.tx_hash}")

    return CanonicalTransaction(
        account_updates=records,
        tx_hash=tx.tx_hash,
        block_height=tx.block_height,
        memo=tx.memo or "",
        status=tx.tx_status,
        fee=tx.fee,
        fee_payer_address=tx.fee_payer_address,
        timestamp=tx.timestamp,
        failures=[f.model_dump(by_alias=True) for f in tx.failures],
    )


def _records_from_items(items: Sequence[Any]) -> List[OperationRecord]:
    records = []
    for i, item in enumerate(items):
        if isinstance(item, OperationRecord):
            records.append(item)
            continue
        if not isinstance(item, Mapping):
            logger.warning(f"[Adapter] Skipping account update {i}: not a mapping")
            continue
        try:
            records.append(OperationRecord.from_mapping(item, default_id=f"au-{i}"))
        except (AutraceError, TypeError, ValueError) as exc:
            error = handle_error(exc, context=f"account update {i}")
            logger.warning(f"[Adapter] Skipping malformed account update {i}: {error.to_json()}")
    return records


def canonicalize_transaction(payload: Any, config: Optional[AdapterConfig] = None) -> CanonicalTransaction:
    """
    Accepts, in order of preference:
    - a CanonicalTransaction
    - a list of OperationRecords / canonical mappings
    - {"accountUpdates": [...]} or {"transaction": {"accountUpdates": [...]}}
    - a block-explorer payload ({"txHash": ..., "updatedAccounts": [...]})
    """
    if isinstance(payload, CanonicalTransaction):
        return payload
    if isinstance(payload, (list, tuple)):
        return CanonicalTransaction(account_updates=_records_from_items(payload))
    if not isinstance(payload, Mapping):
        if payload is not None:
            logger.warning(f"[Adapter] Unrecognized transaction payload {type(payload).__name__}")
        return CanonicalTransaction()

    inner = payload.get("transaction")
    source = inner if isinstance(inner, Mapping) and "accountUpdates" in inner else payload
    if "accountUpdates" in source:
        items = source.get("accountUpdates")
        if not isinstance(items, (list, tuple)):
            logger.warning("[Adapter] accountUpdates is not a list; no account updates")
            items = []
        return CanonicalTransaction(
            account_updates=_records_from_items(items),
            tx_hash=source.get("hash") or payload.get("txHash"),
            memo=str(source.get("memo") or ""),
            status=source.get("status"),
        )

    if "updatedAccounts" in payload or "txHash" in payload:
        return adapt_explorer_transaction(payload, config)

    logger.warning("[Adapter] Payload has neither accountUpdates nor updatedAccounts; no account updates")
    return CanonicalTransaction()
