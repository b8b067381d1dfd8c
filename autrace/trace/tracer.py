"""
Transaction tracer.

The entry point callers use for one analysis run: it canonicalizes the input,
runs hierarchy inference and the flow graph builder over the account updates,
summarizes proofs / signatures / fees, and keeps the snapshot and state
histories.

Engines run strictly one after another; one tracer instance per independently
analyzed transaction stream.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from autrace.adapters.explorer import CanonicalTransaction, canonicalize_transaction
from autrace.analysis.flow import FlowEdge, FlowGraph, FlowGraphBuilder
from autrace.analysis.hierarchy import HierarchyInferenceEngine, Relationship
from autrace.base.config import AutraceConfig, get_config
from autrace.model.records import AuthorizationKind, LifecyclePhase, OperationRecord
from autrace.model.values import as_exact_int, is_integer_like
from autrace.trace.history import SnapshotHistory, TransactionSnapshot, _now_ms

logger = logging.getLogger(__name__)

_CONTRACT_LABEL_HINTS = ("contract", "zkapp", "deploy")


@dataclass
class TransactionMetadata:
    total_proofs: int = 0
    total_signatures: int = 0
    total_fees: int = 0  # base units, summed from negative balance changes
    operation_count: int = 0


@dataclass
class OperationEdge:
    """Parent -> child link of the call hierarchy, numbered in relationship order."""
    id: str
    from_node: str
    to_node: str
    sequence: int
    type: str
    status: str
    amount: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "fromNode": self.from_node,
            "toNode": self.to_node,
            "operation": {"sequence": self.sequence, "type": self.type, "status": self.status},
        }
        if self.amount is not None:
            data["operation"]["amount"] = dict(self.amount)
        return data


@dataclass
class TransactionState:
    nodes: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    relationships: Dict[str, Relationship] = field(default_factory=dict)
    edges: List[OperationEdge] = field(default_factory=list)
    balance_states: Dict[str, List[int]] = field(default_factory=dict)
    metadata: TransactionMetadata = field(default_factory=TransactionMetadata)
    flow_graph: Optional[FlowGraph] = None
    blockchain_data: Optional[Dict[str, Any]] = None


def is_contract(record: OperationRecord) -> bool:
    label = (record.label or "").lower()
    if any(hint in label for hint in _CONTRACT_LABEL_HINTS):
        return True
    update = record.body.get("update")
    if isinstance(update, dict):
        vk = update.get("verificationKey")
        if isinstance(vk, dict) and vk.get("data"):
            return True
    return record.authorization_kind is AuthorizationKind.PROOF


def build_relationship_edges(relationships: Dict[str, Relationship]) -> List[OperationEdge]:
    edges: List[OperationEdge] = []
    for rel in relationships.values():
        if rel.parent_id is None:
            continue
        sequence = len(edges) + 1
        amount = None
        if rel.state_changes and is_integer_like(rel.state_changes[0].value):
            amount = {"value": as_exact_int(rel.state_changes[0].value), "denomination": "state"}
        edges.append(OperationEdge(
            id=f"op{sequence}",
            from_node=rel.parent_id,
            to_node=rel.id,
            sequence=sequence,
            type=rel.method.name if rel.method else "update",
            status="failed" if rel.failed else "success",
            amount=amount,
        ))
    return edges


class TransactionTracer:
    def __init__(self, config: Optional[AutraceConfig] = None, clock: Callable[[], int] = _now_ms):
        self.config = config or get_config()
        self.history = SnapshotHistory(self.config.diff, clock=clock)
        self.hierarchy = HierarchyInferenceEngine()
        self.flow_builder = FlowGraphBuilder()
        self._state_history: List[TransactionState] = []

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def take_snapshot(self, transaction: Any, phase: Union[LifecyclePhase, str]) -> TransactionSnapshot:
        """Diff `transaction`'s account updates against the previous snapshot and store it."""
        ops = canonicalize_transaction(transaction, self.config.adapter).account_updates
        return self.history.take_snapshot(ops, phase)

    def get_snapshots(self) -> Tuple[TransactionSnapshot, ...]:
        return self.history.snapshots

    # ------------------------------------------------------------------
    # Relationships and flow
    # ------------------------------------------------------------------

    def get_relationships(self) -> Dict[str, Relationship]:
        return self.hierarchy.get_relationships()

    def build_flow_graph(self, ops: Any, initiator: Optional[str] = None) -> List[FlowEdge]:
        """Accepts records, canonical mappings or explorer payloads, like take_snapshot."""
        records = canonicalize_transaction(ops, self.config.adapter).account_updates
        return self.flow_builder.build(records, initiator)

    def clear_transaction_state(self) -> None:
        """Drop per-transaction engine state; histories are kept."""
        self.hierarchy.reset()

    reset = clear_transaction_state

    # ------------------------------------------------------------------
    # Full analysis
    # ------------------------------------------------------------------

    def get_transaction_state(self, transaction: Any) -> TransactionState:
        canonical = canonicalize_transaction(transaction, self.config.adapter)
        records = canonical.account_updates

        self.clear_transaction_state()
        self.hierarchy.process_all(records)
        relationships = self.hierarchy.get_relationships()

        state = TransactionState(
            nodes={r.id: self._node(r) for r in records},
            relationships=relationships,
            edges=build_relationship_edges(relationships),
            balance_states={r.id: [0, r.signed_balance_change()] for r in records},
            metadata=self._summarize(records),
            flow_graph=self.flow_builder.analyze(canonical),
            blockchain_data=self._blockchain_data(canonical),
        )
        self._state_history.append(state)

        logger.info(
            f"[Tracer] Analyzed {state.metadata.operation_count} account updates: "
            f"{state.metadata.total_proofs} proof(s), {state.metadata.total_signatures} signature(s), "
            f"fees {state.metadata.total_fees}"
        )
        return state

    def get_transactions(self, *transactions: Any) -> List[TransactionState]:
        return [self.get_transaction_state(tx) for tx in transactions if tx]

    def get_state_history(self) -> Tuple[TransactionState, ...]:
        return tuple(self._state_history)

    @staticmethod
    def _node(record: OperationRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "type": "contract" if is_contract(record) else "account",
            "label": record.label,
            "publicKey": record.account_address(),
            "contractType": record.label or None,
            "failed": record.failed,
            "failureReason": record.failure_reason,
            "tokenId": record.resource_id,
            "callDepth": record.call_depth,
        }

    @staticmethod
    def _summarize(records: Sequence[OperationRecord]) -> TransactionMetadata:
        meta = TransactionMetadata(operation_count=len(records))
        for record in records:
            if record.authorization_kind is AuthorizationKind.PROOF:
                meta.total_proofs += 1
            elif record.authorization_kind is AuthorizationKind.SIGNATURE:
                meta.total_signatures += 1
            change = record.signed_balance_change()
            if change < 0:
                meta.total_fees += -change
        return meta

    @staticmethod
    def _blockchain_data(canonical: CanonicalTransaction) -> Optional[Dict[str, Any]]:
        if not canonical.tx_hash:
            return None
        return {
            "txHash": canonical.tx_hash,
            "blockHeight": canonical.block_height,
            "timestamp": canonical.timestamp,
            "memo": canonical.memo,
            "status": canonical.status or "unknown",
            "failures": list(canonical.failures),
        }
