"""
Snapshot history.

Append-only record of how one transaction's account updates evolved across
its lifecycle phases. Each snapshot stores the tree as it was handed in plus
the change log against the previous snapshot's tree.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from autrace.base.config import DiffConfig
from autrace.diff.engine import ChangeLog, StructuralDiffEngine, _render_node
from autrace.errors import AutraceError, ErrorCode
from autrace.model.records import LifecyclePhase, OperationRecord

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_phase(phase: Union[LifecyclePhase, str]) -> LifecyclePhase:
    if isinstance(phase, LifecyclePhase):
        return phase
    try:
        return LifecyclePhase(str(phase).lower())
    except ValueError:
        raise AutraceError(
            ErrorCode.PHASE_INVALID,
            f"Unknown lifecycle phase: {phase!r}",
            details={"phase": phase, "allowed": [p.value for p in LifecyclePhase]},
        ) from None


@dataclass(frozen=True)
class TransactionSnapshot:
    operation: LifecyclePhase
    timestamp: int
    tree: List[OperationRecord]
    changes: ChangeLog

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "timestamp": self.timestamp,
            "tree": _render_node(self.tree),
            "changes": self.changes.to_dict(),
        }


class SnapshotHistory:
    """
    Owns the ordered snapshots of one analysis run. Snapshots are only ever
    appended; "previous" always means the tree of the last snapshot taken.
    """

    def __init__(self, config: Optional[DiffConfig] = None, clock: Callable[[], int] = _now_ms):
        self._engine = StructuralDiffEngine(config)
        self._clock = clock
        self._snapshots: List[TransactionSnapshot] = []
        self._current_tree: Optional[List[OperationRecord]] = None

    def take_snapshot(
        self,
        current_ops: Optional[Sequence[OperationRecord]],
        phase: Union[LifecyclePhase, str],
    ) -> TransactionSnapshot:
        operation = parse_phase(phase)
        if isinstance(current_ops, (list, tuple)):
            tree = list(current_ops)
        else:
            if current_ops is not None:
                logger.warning(f"[History] Snapshot tree is not a list ({type(current_ops).__name__}); storing empty tree")
            tree = []

        snapshot = TransactionSnapshot(
            operation=operation,
            timestamp=self._clock(),
            tree=tree,
            changes=self._engine.diff(self._current_tree, tree),
        )
        self._snapshots.append(snapshot)
        self._current_tree = tree

        logger.info(
            f"[History] Snapshot #{len(self._snapshots)} ({operation.value}): "
            f"{len(tree)} account updates, "
            f"+{len(snapshot.changes.added)} -{len(snapshot.changes.removed)} ~{len(snapshot.changes.updated)}"
        )
        return snapshot

    @property
    def snapshots(self) -> Tuple[TransactionSnapshot, ...]:
        return tuple(self._snapshots)

    @property
    def latest(self) -> Optional[TransactionSnapshot]:
        return self._snapshots[-1] if self._snapshots else None

    @property
    def current_tree(self) -> Optional[List[OperationRecord]]:
        return None if self._current_tree is None else list(self._current_tree)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[TransactionSnapshot]:
        return iter(tuple(self._snapshots))
