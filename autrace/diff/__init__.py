# ============================================================================
# autrace/diff/__init__.py
# Structural Diff Package
# ============================================================================
#
# PURPOSE:
# Computes what changed between two snapshots of a transaction's account
# updates, addressed by dotted paths such as
# accountUpdate[1].body.update.permissions.send
#
# KEY MODULES:
# - **comparator.py**: deep equality over tagged values
# - **keys.py**: leaf-path enumeration of a record
# - **engine.py**: added / removed / updated change log
#
# ============================================================================

from .comparator import values_equal
from .keys import enumerate_keys, is_leaf, leaf_value
from .engine import (
    ChangeEntry,
    ChangeLog,
    FieldChange,
    StructuralDiffEngine,
    UpdateEntry,
    diff_operations,
)
