# ============================================================================
# autrace/model/__init__.py
# Canonical Data Model
# ============================================================================
#
# PURPOSE:
# The shapes every engine agrees on.
#
# KEY MODULES:
# - **values.py**: tagged value model (absent / primitive / opaque / list / record)
# - **records.py**: OperationRecord and the small closed enums around it
#
# ============================================================================

from .values import OpaqueToken, ValueKind, classify, canonicalize_value
from .records import (
    DEFAULT_RESOURCE_ID,
    AuthorizationKind,
    LifecyclePhase,
    OperationRecord,
)
