# ============================================================================
# autrace/adapters/__init__.py
# ============================================================================
#
# PURPOSE:
# Converts externally-shaped transaction payloads into the canonical
# OperationRecord list. Pure functions; no I/O happens here.
#
# ============================================================================

from .explorer import CanonicalTransaction, adapt_explorer_transaction, canonicalize_transaction
