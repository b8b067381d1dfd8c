# ============================================================================
# autrace/analysis/__init__.py
# Relationship Inference Package
# ============================================================================
#
# PURPOSE:
# Infers how the account updates of one transaction relate to each other.
#
# KEY MODULES:
# - **hierarchy.py**: parent/child call structure from call depths
# - **flow.py**: directed flow graph merged from several edge heuristics
#
# ============================================================================

from .hierarchy import HierarchyInferenceEngine, Relationship, MethodInfo, StateChange
from .flow import (
    EdgeType,
    FlowEdge,
    FlowGraph,
    FlowGraphBuilder,
    ProcessedOperation,
    merge_edges,
)
