"""Deep equality over tagged values."""

from typing import Any

from autrace.model.values import ValueKind, as_exact_int, classify, is_integer_like


def values_equal(a: Any, b: Any) -> bool:
    """
    Structural equality used by the diff engine.

    - opaque tokens: equal iff canonical encodings match
    - lists: same length, pairwise equal
    - records: same key set, pairwise equal
    - None equals only None
    - an int against an int or a decimal integer string compares by exact
      integer value ("340282366920938463463374607431768211457" == 2**128 + 1)
    """
    kind_a = classify(a)
    kind_b = classify(b)

    if kind_a is ValueKind.ABSENT or kind_b is ValueKind.ABSENT:
        return kind_a is kind_b

    if kind_a is ValueKind.OPAQUE and kind_b is ValueKind.OPAQUE:
        return a.canonical() == b.canonical()

    if kind_a is ValueKind.LIST and kind_b is ValueKind.LIST:
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))

    if kind_a is ValueKind.RECORD and kind_b is ValueKind.RECORD:
        if a.keys() != b.keys():
            return False
        return all(values_equal(a[k], b[k]) for k in a)

    if kind_a is ValueKind.PRIMITIVE and kind_b is ValueKind.PRIMITIVE:
        if isinstance(a, bool) or isinstance(b, bool):
            return type(a) is type(b) and a == b
        if (isinstance(a, int) or isinstance(b, int)) and is_integer_like(a) and is_integer_like(b):
            return as_exact_int(a) == as_exact_int(b)
        if isinstance(a, str) != isinstance(b, str):
            return False
        return a == b

    if kind_a is ValueKind.CALLABLE and kind_b is ValueKind.CALLABLE:
        return a is b

    return False
