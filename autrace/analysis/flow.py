"""
Transaction Flow Graph - Multi-Signal Relationship Inference

PURPOSE:
Derive one directed graph over the account updates of a transaction from
several independent heuristics, each of which sees a different signal.

HEURISTICS (highest priority first):
1. **call_depth**: closest preceding update on the same address one level up
2. **state_dependency**: updates holding the same non-zero app-state value
3. **token_operation**: chain of updates on the same non-default token
4. **fee_payer**: initiator -> first later update on another address
5. **call_data**: update carrying call data -> the next update
6. **sequence**: every consecutive pair (fallback)

MERGE RULE:
Candidate edges are taken in the priority order above and the first edge for
an ordered (from, to) pair wins; later heuristics never overwrite it. Edges
touching a failed update are marked failed afterwards.

The result can be exported to networkx for the same kind of analysis the rest
of the tooling runs on graphs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx

from autrace.model.records import DEFAULT_RESOURCE_ID, OperationRecord
from autrace.model.values import render_value

logger = logging.getLogger(__name__)


class EdgeType(str, Enum):
    CALL_DEPTH = "call_depth"
    STATE_DEPENDENCY = "state_dependency"
    TOKEN_OPERATION = "token_operation"
    FEE_PAYER = "fee_payer"
    CALL_DATA = "call_data"
    SEQUENCE = "sequence"


EDGE_LABELS: Dict[EdgeType, str] = {
    EdgeType.CALL_DEPTH: "calls (depth)",
    EdgeType.STATE_DEPENDENCY: "state dep",
    EdgeType.TOKEN_OPERATION: "token op",
    EdgeType.FEE_PAYER: "initiates",
    EdgeType.CALL_DATA: "calls (data)",
    EdgeType.SEQUENCE: "sequence",
}


@dataclass(frozen=True)
class ProcessedOperation(OperationRecord):
    """An OperationRecord with the signals the flow heuristics read resolved up front."""
    index: int = 0
    address: str = ""
    balance_change: int = 0
    state_values: Tuple[str, ...] = ()
    call_data: Optional[str] = None
    token_symbol: str = "Custom"

    @classmethod
    def from_record(cls, record: OperationRecord, index: int) -> "ProcessedOperation":
        body = record.body
        update = body.get("update") if isinstance(body.get("update"), dict) else {}

        call_data = body.get("callData")
        if call_data is not None:
            call_data = str(call_data)
        if call_data in ("", "0"):
            call_data = None

        if update.get("tokenSymbol"):
            symbol = str(update["tokenSymbol"])
        elif record.resource_id == DEFAULT_RESOURCE_ID:
            symbol = "MINA"
        else:
            symbol = "Custom"

        return cls(
            id=record.id,
            label=record.label,
            call_depth=record.call_depth,
            resource_id=record.resource_id,
            authorization_kind=record.authorization_kind,
            failed=record.failed,
            failure_reason=record.failure_reason,
            body=record.body,
            index=index,
            address=record.account_address(),
            balance_change=record.signed_balance_change(),
            state_values=tuple("0" if not v else str(v) for v in record.app_state()),
            call_data=call_data,
            token_symbol=symbol,
        )

    def non_zero_state(self) -> List[Tuple[int, str]]:
        return [(slot, value) for slot, value in enumerate(self.state_values) if value and value != "0"]

    def to_node(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "index": self.index,
            "label": self.label,
            "address": self.address,
            "shortAddress": f"{self.address[:12]}..." if self.address else "",
            "callDepth": self.call_depth,
            "resourceId": self.resource_id,
            "tokenSymbol": self.token_symbol,
            "balanceChange": self.balance_change,
            "authorizationKind": self.authorization_kind.value,
            "failed": self.failed,
            "failureReason": self.failure_reason,
            "callData": self.call_data,
        }


@dataclass(frozen=True)
class FlowEdge:
    source: str
    target: str
    edge_type: EdgeType
    label: str
    failed: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.source,
            "to": self.target,
            "type": self.edge_type.value,
            "label": self.label,
            "failed": self.failed,
        }


def _edge(source: ProcessedOperation, target: ProcessedOperation, edge_type: EdgeType) -> FlowEdge:
    return FlowEdge(source=source.id, target=target.id, edge_type=edge_type, label=EDGE_LABELS[edge_type])


def _chain(ordered: Sequence[ProcessedOperation], edge_type: EdgeType) -> List[FlowEdge]:
    # An update holding one value in two slots yields a self edge
    return [_edge(a, b, edge_type) for a, b in zip(ordered, ordered[1:])]


# ============================================================================
# Heuristics
# ============================================================================
# All heuristics share one signature so they can sit in a single priority
# list; only fee_payer_edges reads the initiator.

def call_depth_edges(ops: Sequence[ProcessedOperation], initiator: Optional[str] = None) -> List[FlowEdge]:
    by_depth: Dict[int, List[ProcessedOperation]] = {}
    for op in ops:
        by_depth.setdefault(op.call_depth, []).append(op)

    edges = []
    for op in ops:
        if op.call_depth <= 0:
            continue
        candidates = [
            p for p in by_depth.get(op.call_depth - 1, [])
            if p.address == op.address and p.index < op.index
        ]
        if candidates:
            parent = max(candidates, key=lambda p: p.index)
            edges.append(_edge(parent, op, EdgeType.CALL_DEPTH))
    return edges


def state_dependency_edges(ops: Sequence[ProcessedOperation], initiator: Optional[str] = None) -> List[FlowEdge]:
    holders: Dict[str, List[Tuple[ProcessedOperation, int]]] = {}
    for op in ops:
        for slot, value in op.non_zero_state():
            holders.setdefault(value, []).append((op, slot))

    edges = []
    for appearances in holders.values():
        if len(appearances) < 2:
            continue
        ordered = [op for op, _slot in sorted(appearances, key=lambda a: (a[0].index, a[1]))]
        edges.extend(_chain(ordered, EdgeType.STATE_DEPENDENCY))
    return edges


def token_operation_edges(ops: Sequence[ProcessedOperation], initiator: Optional[str] = None) -> List[FlowEdge]:
    groups: Dict[str, List[ProcessedOperation]] = {}
    for op in ops:
        groups.setdefault(op.resource_id, []).append(op)

    edges = []
    for resource_id, members in groups.items():
        if resource_id == DEFAULT_RESOURCE_ID or len(members) < 2:
            continue
        edges.extend(_chain(sorted(members, key=lambda m: m.index), EdgeType.TOKEN_OPERATION))
    return edges


def find_fee_payer(ops: Sequence[ProcessedOperation], initiator: Optional[str]) -> Optional[ProcessedOperation]:
    """Declared initiator address first, then the first negative balance change."""
    if initiator:
        for op in ops:
            if op.address == initiator:
                return op
    for op in ops:
        if op.balance_change < 0:
            return op
    return None


def fee_payer_edges(ops: Sequence[ProcessedOperation], initiator: Optional[str] = None) -> List[FlowEdge]:
    payer = find_fee_payer(ops, initiator)
    if payer is None:
        return []
    for op in ops:
        if op.index > payer.index and op.address != payer.address:
            return [_edge(payer, op, EdgeType.FEE_PAYER)]
    return []


def call_data_edges(ops: Sequence[ProcessedOperation], initiator: Optional[str] = None) -> List[FlowEdge]:
    return [
        _edge(op, nxt, EdgeType.CALL_DATA)
        for op, nxt in zip(ops, ops[1:])
        if op.call_data
    ]


def sequence_edges(ops: Sequence[ProcessedOperation], initiator: Optional[str] = None) -> List[FlowEdge]:
    return _chain(list(ops), EdgeType.SEQUENCE)


Heuristic = Callable[[Sequence[ProcessedOperation], Optional[str]], List[FlowEdge]]

HEURISTICS: Tuple[Tuple[EdgeType, Heuristic], ...] = (
    (EdgeType.CALL_DEPTH, call_depth_edges),
    (EdgeType.STATE_DEPENDENCY, state_dependency_edges),
    (EdgeType.TOKEN_OPERATION, token_operation_edges),
    (EdgeType.FEE_PAYER, fee_payer_edges),
    (EdgeType.CALL_DATA, call_data_edges),
    (EdgeType.SEQUENCE, sequence_edges),
)


def merge_edges(candidate_lists: Iterable[Iterable[FlowEdge]]) -> List[FlowEdge]:
    """First edge per ordered (from, to) pair wins, in the order given."""
    merged: List[FlowEdge] = []
    seen: Set[Tuple[str, str]] = set()
    for candidates in candidate_lists:
        for edge in candidates:
            if edge.key in seen:
                continue
            seen.add(edge.key)
            merged.append(edge)
    return merged


def mark_failures(edges: Sequence[FlowEdge], ops: Sequence[ProcessedOperation]) -> List[FlowEdge]:
    failed_ids = {op.id for op in ops if op.failed}
    return [
        replace(edge, failed=True) if edge.source in failed_ids or edge.target in failed_ids else edge
        for edge in edges
    ]


# ============================================================================
# Graph
# ============================================================================

@dataclass
class FlowGraph:
    metadata: Dict[str, Any]
    nodes: List[ProcessedOperation]
    edges: List[FlowEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": render_value(self.metadata),
            "nodes": [n.to_node() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    def to_digraph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for node in self.nodes:
            graph.add_node(node.id, **node.to_node())
        for edge in self.edges:
            graph.add_edge(
                edge.source,
                edge.target,
                type=edge.edge_type.value,
                label=edge.label,
                failed=edge.failed,
            )
        return graph


class FlowGraphBuilder:
    """Runs HEURISTICS over processed operations and merges their edges."""

    def __init__(self, heuristics: Sequence[Tuple[EdgeType, Heuristic]] = HEURISTICS):
        self.heuristics = tuple(heuristics)

    @staticmethod
    def process_operations(records: Sequence[OperationRecord]) -> List[ProcessedOperation]:
        return [
            rec if isinstance(rec, ProcessedOperation) and rec.index == i else ProcessedOperation.from_record(rec, i)
            for i, rec in enumerate(records)
        ]

    def build(self, ops: Optional[Sequence[OperationRecord]], initiator: Optional[str] = None) -> List[FlowEdge]:
        if not isinstance(ops, (list, tuple)):
            return []
        processed = self.process_operations(ops)

        duplicates = sorted({op.id for op in processed if sum(o.id == op.id for o in processed) > 1})
        if duplicates:
            logger.warning(f"[FlowGraph] Duplicate account update ids {duplicates}; their edges share one node")

        candidate_lists = []
        for edge_type, heuristic in self.heuristics:
            candidates = heuristic(processed, initiator)
            logger.debug(f"[FlowGraph] {edge_type.value}: {len(candidates)} candidate edge(s)")
            candidate_lists.append(candidates)

        edges = mark_failures(merge_edges(candidate_lists), processed)
        logger.info(f"[FlowGraph] Built {len(edges)} edges over {len(processed)} account updates")
        return edges

    def analyze(self, transaction: Any) -> FlowGraph:
        """
        Full graph for a CanonicalTransaction (or anything exposing
        `account_updates` and optional explorer metadata attributes).
        """
        records = list(getattr(transaction, "account_updates", None) or [])
        processed = self.process_operations(records)
        initiator = getattr(transaction, "fee_payer_address", None)
        root_failure = next((op.id for op in processed if op.failed), None)

        metadata = {
            "txHash": getattr(transaction, "tx_hash", None),
            "status": getattr(transaction, "status", None),
            "blockHeight": getattr(transaction, "block_height", None),
            "timestamp": getattr(transaction, "timestamp", None),
            "fee": getattr(transaction, "fee", None),
            "feePayerAddress": initiator,
            "memo": getattr(transaction, "memo", None) or "",
            "rootFailureId": root_failure,
        }
        return FlowGraph(metadata=metadata, nodes=processed, edges=self.build(processed, initiator))
