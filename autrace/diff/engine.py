"""
Structural diff between two snapshots of a transaction's account updates.

Operations are joined by id. Matched pairs are flattened with
`enumerate_keys` and compared leaf by leaf; unmatched operations are reported
whole. Every entry is addressed by a path that combines the operation's
position with the dotted key inside it:

    accountUpdate[2].body.update.permissions.send
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from autrace.base.config import DiffConfig, get_config
from autrace.diff.comparator import values_equal
from autrace.diff.keys import enumerate_keys, leaf_value
from autrace.model.records import OperationRecord
from autrace.model.values import ValueKind, canonicalize_value, classify, render_value

logger = logging.getLogger(__name__)

Operation = Union[OperationRecord, Mapping[str, Any]]


@dataclass
class ChangeEntry:
    path: str
    node: Any


@dataclass
class FieldChange:
    field: str
    old_value: Any
    new_value: Any


@dataclass
class UpdateEntry:
    path: str
    changes: List[FieldChange] = field(default_factory=list)


@dataclass
class ChangeLog:
    added: List[ChangeEntry] = field(default_factory=list)
    removed: List[ChangeEntry] = field(default_factory=list)
    updated: List[UpdateEntry] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.updated)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form for the renderers (camelCase like the wire format)."""
        return {
            "added": [{"path": e.path, "node": _render_node(e.node)} for e in self.added],
            "removed": [{"path": e.path, "node": _render_node(e.node)} for e in self.removed],
            "updated": [
                {
                    "path": u.path,
                    "changes": [
                        {
                            "field": c.field,
                            "oldValue": render_value(c.old_value),
                            "newValue": render_value(c.new_value),
                        }
                        for c in u.changes
                    ],
                }
                for u in self.updated
            ],
        }


def _render_node(node: Any) -> Any:
    if isinstance(node, OperationRecord):
        return render_value(node.to_tree())
    if isinstance(node, (list, tuple)):
        return [_render_node(n) for n in node]
    return render_value(node)


def _op_id(op: Operation) -> Optional[str]:
    if isinstance(op, OperationRecord):
        return op.id
    raw = op.get("id")
    return None if raw is None else str(raw)


def _op_tree(op: Operation) -> Dict[str, Any]:
    if isinstance(op, OperationRecord):
        return op.to_tree()
    return canonicalize_value(op)


class StructuralDiffEngine:
    """
    Computes the added / removed / updated change log of two operation lists.

    `None` for a side means that side is absent: the other side is reported
    as a single entry at the root path. An empty list is an ordinary list
    with no operations.
    """

    def __init__(self, config: Optional[DiffConfig] = None):
        self.config = config or get_config().diff

    def diff(
        self,
        previous_ops: Optional[Sequence[Operation]],
        current_ops: Optional[Sequence[Operation]],
    ) -> ChangeLog:
        changes = ChangeLog()
        root = self.config.root_path

        if previous_ops is None and current_ops is None:
            return changes
        if previous_ops is None:
            changes.added.append(ChangeEntry(path=root, node=current_ops))
            return changes
        if current_ops is None:
            changes.removed.append(ChangeEntry(path=root, node=previous_ops))
            return changes

        previous = self._normalize(previous_ops, "previous")
        current = self._normalize(current_ops, "current")

        previous_by_id = {_op_id(op): op for op in previous}
        current_by_id = {_op_id(op): op for op in current}

        for index, op in enumerate(previous):
            path = f"{root}[{index}]"
            match = current_by_id.get(_op_id(op))
            if match is None:
                changes.removed.append(ChangeEntry(path=path, node=op))
            else:
                self._diff_pair(_op_tree(op), _op_tree(match), path, changes)

        for index, op in enumerate(current):
            if _op_id(op) not in previous_by_id:
                changes.added.append(ChangeEntry(path=f"{root}[{index}]", node=op))

        logger.debug(
            f"[Diff] {len(previous)} -> {len(current)} operations: "
            f"+{len(changes.added)} -{len(changes.removed)} ~{len(changes.updated)}"
        )
        return changes

    @staticmethod
    def _normalize(ops: Any, side: str) -> List[Operation]:
        if isinstance(ops, (list, tuple)):
            return list(ops)
        logger.warning(f"[Diff] {side} operations are not a list ({type(ops).__name__}); treating as empty")
        return []

    def _diff_pair(self, a: Dict[str, Any], b: Dict[str, Any], path: str, changes: ChangeLog) -> None:
        keys_a = enumerate_keys(a)
        keys_b = enumerate_keys(b)

        for key in sorted(keys_a - keys_b):
            value = leaf_value(a, key)
            if classify(value) is ValueKind.CALLABLE:
                continue
            changes.removed.append(ChangeEntry(path=f"{path}.{key}", node={"key": key, "value": value}))

        for key in sorted(keys_b - keys_a):
            value = leaf_value(b, key)
            if classify(value) is ValueKind.CALLABLE:
                continue
            changes.added.append(ChangeEntry(path=f"{path}.{key}", node={"key": key, "value": self._truncate(key, value)}))

        for key in sorted(keys_a & keys_b):
            old_value = leaf_value(a, key)
            new_value = leaf_value(b, key)
            if classify(old_value) is ValueKind.CALLABLE or classify(new_value) is ValueKind.CALLABLE:
                continue
            if not values_equal(old_value, new_value):
                changes.updated.append(UpdateEntry(
                    path=f"{path}.{key}",
                    changes=[FieldChange(field=key, old_value=old_value, new_value=new_value)],
                ))

    def _truncate(self, key: str, value: Any) -> Any:
        limit = self.config.proof_truncate_length
        if self.config.truncate_marker in key and isinstance(value, str) and len(value) > limit:
            return f"{value[:limit]}..."
        return value


def diff_operations(
    previous_ops: Optional[Sequence[Operation]],
    current_ops: Optional[Sequence[Operation]],
    config: Optional[DiffConfig] = None,
) -> ChangeLog:
    return StructuralDiffEngine(config).diff(previous_ops, current_ops)
