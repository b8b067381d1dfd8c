# ============================================================================
# autrace/__init__.py
# Transaction Evolution & Relationship Inference Engine
# ============================================================================
#
# PURPOSE:
# Tracks how a transaction's tree of account updates evolves across its
# lifecycle (build, prove, sign, send) and infers how the account updates
# inside one snapshot relate to each other.
#
# WHAT AUTRACE DOES:
# - Diffs two snapshots into an added / removed / updated change log
# - Rebuilds caller/callee nesting from flat call-depth annotations
# - Merges several edge heuristics into one deterministic flow graph
#
# ============================================================================

from .errors import AutraceError, ErrorCode
from .model import OperationRecord, OpaqueToken, LifecyclePhase, AuthorizationKind
from .trace import SnapshotHistory, TransactionTracer

__version__ = "0.3.0"
