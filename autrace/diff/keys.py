"""
Leaf-path enumeration.

A record is flattened into the set of dotted paths that lead to its leaves:

    {"body": {"update": {"permissions": {"send": "proof"}}, "callData": "0"}}
        -> {"body.update.permissions.send", "body.callData"}

Lists are leaves at this level; their content is compared as a whole by the
comparator, which keeps large array payloads from exploding into paths.
"""

from typing import Any, FrozenSet

from autrace.model.values import ValueKind, classify

_LEAF_KINDS = frozenset({
    ValueKind.ABSENT,
    ValueKind.PRIMITIVE,
    ValueKind.OPAQUE,
    ValueKind.LIST,
    ValueKind.CALLABLE,
})


def is_leaf(value: Any) -> bool:
    kind = classify(value)
    if kind in _LEAF_KINDS:
        return True
    return len(value) == 0


def enumerate_keys(node: Any, prefix: str = "") -> FrozenSet[str]:
    """
    All dotted leaf paths under `node`.

    A leaf at a non-empty prefix yields the prefix itself. The root never
    yields the empty path: a leaf root has no addressable keys.
    """
    if is_leaf(node):
        return frozenset({prefix}) if prefix else frozenset()

    keys: FrozenSet[str] = frozenset()
    for key, value in node.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        keys = keys | enumerate_keys(value, path)
    return keys


def leaf_value(tree: Any, key: str) -> Any:
    """Walk a dotted path; None when any segment is missing."""
    current = tree
    for part in key.split("."):
        if classify(current) is not ValueKind.RECORD or part not in current:
            return None
        current = current[part]
    return current
