"""
Hierarchy inference for account updates.

PURPOSE:
Account updates arrive as a flat list where each entry only carries its call
depth. This rebuilds the caller/callee tree with a call stack: an update at
depth d is a child of the most recent still-open update at a shallower depth.

KEY CONCEPTS:
- **Call stack**: ids of open (non-failed) updates, unwound whenever a new
  update is not deeper than the current depth.
- **Failed updates**: recorded with a "[FAILED]" label but never pushed, so
  nothing can be nested under them.
- **Resource orphans**: parentless updates that touch the same resource
  (the default one included) are attached to the first of them, recovering
  links the depth data did not expose.

EXAMPLE:
    depths [0, 1, 2, 1, 0] for ids a..e, a and e on different resources

    a
    +-- b
    |   +-- c
    +-- d
    e
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from autrace.model.records import DEFAULT_RESOURCE_ID, OperationRecord
from autrace.model.values import OpaqueToken

logger = logging.getLogger(__name__)

FAILED_LABEL_PREFIX = "[FAILED] "


@dataclass(frozen=True)
class MethodInfo:
    contract: str
    name: str


@dataclass(frozen=True)
class StateChange:
    field: str
    value: Any


@dataclass
class Relationship:
    id: str
    label: str
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    depth: int = 0
    resource_id: str = DEFAULT_RESOURCE_ID
    failed: bool = False
    failure_reason: Optional[str] = None
    method: Optional[MethodInfo] = None
    state_changes: List[StateChange] = field(default_factory=list)


def extract_method_info(label: Optional[str]) -> Optional[MethodInfo]:
    """'Token.transfer()' -> MethodInfo(contract='Token', name='transfer')."""
    if not label:
        return None
    parts = label.split(".")
    if len(parts) < 2:
        return None
    return MethodInfo(contract=parts[0], name=parts[1].replace("()", ""))


def extract_state_changes(op: OperationRecord) -> List[StateChange]:
    changes = []
    for index, value in enumerate(op.app_state()):
        if value is None or value == "" or str(value) == "0":
            continue
        changes.append(StateChange(
            field=f"appState[{index}]",
            value=value.canonical() if isinstance(value, OpaqueToken) else value,
        ))
    return changes


class HierarchyInferenceEngine:
    """
    Stateful per-transaction engine. Call reset() (or use a fresh instance)
    before processing another transaction; instances are not shareable
    between concurrent runs.
    """

    def __init__(self):
        self.parent_stack: List[str] = []
        self.current_depth: int = 0
        self.relationships: Dict[str, Relationship] = {}
        self.resource_groups: Dict[str, List[str]] = {}

    def reset(self) -> None:
        self.parent_stack = []
        self.current_depth = 0
        self.relationships = {}
        self.resource_groups = {}

    def process(self, op: OperationRecord) -> Relationship:
        if op.id in self.relationships:
            logger.warning(f"[Hierarchy] Duplicate account update id {op.id}; keeping the first occurrence")
            return self.relationships[op.id]

        depth = op.call_depth or 0

        # Unwind to the nearest enclosing depth strictly below this one
        while self.current_depth >= depth and self.parent_stack:
            self.parent_stack.pop()
            self.current_depth -= 1

        parent_id = self.parent_stack[-1] if self.parent_stack else None

        label = op.label or "Unnamed Update"
        if op.failed:
            label = f"{FAILED_LABEL_PREFIX}{label}"

        relationship = Relationship(
            id=op.id,
            label=label,
            parent_id=parent_id,
            depth=depth,
            resource_id=op.resource_id,
            failed=op.failed,
            failure_reason=op.failure_reason,
            method=extract_method_info(op.label),
            state_changes=extract_state_changes(op),
        )
        if parent_id is not None:
            self.relationships[parent_id].children.append(op.id)

        self.relationships[op.id] = relationship
        self.resource_groups.setdefault(op.resource_id, []).append(op.id)

        if not op.failed:
            self.parent_stack.append(op.id)
            self.current_depth = depth
        else:
            logger.debug(f"[Hierarchy] {op.id} failed ({op.failure_reason}); excluded from call stack")

        return relationship

    def process_all(self, ops: List[OperationRecord]) -> None:
        for op in ops:
            self.process(op)

    def resolve_resource_orphans(self) -> int:
        """
        Attach parentless, non-failed updates sharing a resource to the first
        of them. Idempotent; returns the number of links created.
        """
        linked = 0
        for resource_id, member_ids in self.resource_groups.items():
            if len(member_ids) < 2:
                continue
            orphans = [
                rel for rel in (self.relationships[i] for i in member_ids)
                if rel.parent_id is None and not rel.failed
            ]
            if len(orphans) < 2:
                continue
            root, rest = orphans[0], orphans[1:]
            for orphan in rest:
                orphan.parent_id = root.id
                root.children.append(orphan.id)
                linked += 1
            logger.debug(f"[Hierarchy] Linked {len(rest)} orphan(s) under {root.id} for resource {resource_id}")
        return linked

    def get_relationships(self) -> Dict[str, Relationship]:
        self.resolve_resource_orphans()
        return self.relationships

    def hierarchical_view(self) -> List[Dict[str, Any]]:
        """Nested dicts rooted at parentless relationships, in list order."""
        relationships = self.get_relationships()

        def build(rel: Relationship) -> Dict[str, Any]:
            return {
                "id": rel.id,
                "label": rel.label,
                "method": rel.method,
                "stateChanges": rel.state_changes,
                "failed": rel.failed,
                "children": [build(relationships[c]) for c in rel.children if c in relationships],
            }

        return [build(rel) for rel in relationships.values() if rel.parent_id is None]
