# ============================================================================
# autrace/trace/__init__.py
# Orchestration Package
# ============================================================================
#
# PURPOSE:
# Ties the engines together for one analysis run.
#
# KEY MODULES:
# - **history.py**: append-only snapshot history with change logs
# - **tracer.py**: TransactionTracer, the entry point callers use
#
# ============================================================================

from .history import SnapshotHistory, TransactionSnapshot
from .tracer import OperationEdge, TransactionState, TransactionTracer
