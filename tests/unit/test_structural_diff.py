"""
Structural diff tests: identity, path addressing, proof truncation, and the
handling of absent sides and callables.
"""
import pytest

from autrace.base.config import DiffConfig
from autrace.diff.engine import StructuralDiffEngine, diff_operations
from autrace.errors import AutraceError, ErrorCode
from autrace.model.records import OperationRecord
from autrace.model.values import OpaqueToken


@pytest.fixture
def engine():
    return StructuralDiffEngine(DiffConfig())


@pytest.fixture
def three_ops(make_op):
    return [
        make_op("fee", balance=-100_000_000),
        make_op("call", depth=1, permissions={"send": "signature", "editState": "proof"}),
        make_op("inner", depth=2),
    ]


def test_identical_lists_produce_empty_log(engine, three_ops):
    changes = engine.diff(three_ops, list(three_ops))
    assert changes.is_empty()


def test_diff_against_self_with_rebuilt_records(engine, make_op):
    before = [make_op("a", app_state=["1", "0"]), make_op("b", depth=1)]
    after = [make_op("a", app_state=["1", "0"]), make_op("b", depth=1)]
    assert engine.diff(before, after).is_empty()


def test_single_leaf_change_is_addressed_by_position_and_key(engine, three_ops, make_op):
    current = list(three_ops)
    current[1] = make_op("call", depth=1, permissions={"send": "proof", "editState": "proof"})

    changes = engine.diff(three_ops, current)

    assert changes.added == []
    assert changes.removed == []
    assert len(changes.updated) == 1
    entry = changes.updated[0]
    assert entry.path == "accountUpdate[1].body.update.permissions.send"
    assert len(entry.changes) == 1
    assert entry.changes[0].field == "body.update.permissions.send"
    assert entry.changes[0].old_value == "signature"
    assert entry.changes[0].new_value == "proof"


def test_added_proof_is_truncated(engine, make_op):
    proof = "x" * 80
    before = [make_op("a", authorization={})]
    after = [make_op("a", authorization={"proof": proof})]

    changes = engine.diff(before, after)

    added = {e.path: e.node for e in changes.added}
    node = added["accountUpdate[0].body.authorization.proof"]
    assert node["key"] == "body.authorization.proof"
    assert node["value"] == "x" * 50 + "..."
    assert len(node["value"]) == 53

    # The empty authorization record was a leaf of its own
    assert [e.path for e in changes.removed] == ["accountUpdate[0].body.authorization"]


def test_short_proof_is_kept_whole(engine, make_op):
    before = [make_op("a", authorization={})]
    after = [make_op("a", authorization={"proof": "short"})]
    added = engine.diff(before, after).added
    assert added[0].node["value"] == "short"


def test_truncation_length_comes_from_config(make_op):
    engine = StructuralDiffEngine(DiffConfig(proof_truncate_length=10))
    changes = engine.diff([make_op("a")], [make_op("a", proof="p" * 40)])
    assert changes.added[0].node["value"] == "p" * 10 + "..."


def test_non_proof_values_are_not_truncated(engine, make_op):
    memo = "m" * 120
    changes = engine.diff([make_op("a")], [make_op("a", memo=memo)])
    assert changes.added[0].node == {"key": "body.memo", "value": memo}


def test_unmatched_operations_are_reported_whole(engine, make_op):
    a, b, c = make_op("a"), make_op("b"), make_op("c")

    changes = engine.diff([a, b], [a, c])

    assert [(e.path, e.node) for e in changes.removed] == [("accountUpdate[1]", b)]
    assert [(e.path, e.node) for e in changes.added] == [("accountUpdate[1]", c)]
    assert changes.updated == []


def test_operations_are_joined_by_id_not_position(engine, make_op):
    a, b = make_op("a"), make_op("b")
    assert engine.diff([a, b], [b, a]).is_empty()


def test_absent_previous_side_is_one_root_entry(engine, three_ops):
    changes = engine.diff(None, three_ops)
    assert len(changes.added) == 1
    assert changes.added[0].path == "accountUpdate"
    assert changes.added[0].node == three_ops
    assert changes.removed == [] and changes.updated == []


def test_absent_current_side_is_one_root_entry(engine, three_ops):
    changes = engine.diff(three_ops, None)
    assert [e.path for e in changes.removed] == ["accountUpdate"]
    assert changes.added == []


def test_both_sides_absent(engine):
    assert engine.diff(None, None).is_empty()


def test_empty_list_is_an_ordinary_list(engine, make_op):
    a = make_op("a")
    changes = engine.diff([], [a])
    assert [(e.path, e.node) for e in changes.added] == [("accountUpdate[0]", a)]


def test_non_list_side_is_treated_as_empty(engine, make_op):
    a = make_op("a")
    changes = engine.diff("garbage", [a])
    assert [e.path for e in changes.added] == ["accountUpdate[0]"]


def test_integer_strings_and_ints_do_not_differ(engine):
    before = [{"id": "a", "body": {"balance": "1000"}}]
    after = [{"id": "a", "body": {"balance": 1000}}]
    assert engine.diff(before, after).is_empty()


def test_large_balance_change_is_detected_exactly(engine):
    before = [{"id": "a", "body": {"balance": str(2 ** 70)}}]
    after = [{"id": "a", "body": {"balance": str(2 ** 70 + 1)}}]
    changes = engine.diff(before, after)
    assert [u.path for u in changes.updated] == ["accountUpdate[0].body.balance"]


def test_callables_are_never_diffed(engine):
    def sign():
        pass

    def prove():
        pass

    before = [{"id": "a", "helper": sign, "x": 1}]
    after = [{"id": "a", "helper": prove, "x": 1, "extra": prove}]

    assert engine.diff(before, after).is_empty()


def test_nested_list_values_compare_as_a_whole(engine, make_op):
    before = [make_op("a", app_state=["1", "2"])]
    after = [make_op("a", app_state=["1", "3"])]
    updated = engine.diff(before, after).updated
    assert [u.path for u in updated] == ["accountUpdate[0].body.update.appState"]
    assert updated[0].changes[0].old_value == ["1", "2"]


def test_root_path_comes_from_config(make_op):
    engine = StructuralDiffEngine(DiffConfig(root_path="au"))
    changes = engine.diff([make_op("a")], [make_op("a", failed=True)])
    assert [u.path for u in changes.updated] == ["au[0].failed"]


def test_to_dict_renders_opaque_tokens(make_op):
    changes = diff_operations(
        [make_op("a", address="B62old")],
        [make_op("a", address="B62new")],
    )
    assert changes.to_dict() == {
        "added": [],
        "removed": [],
        "updated": [
            {
                "path": "accountUpdate[0].body.publicKey",
                "changes": [
                    {"field": "body.publicKey", "oldValue": "B62old", "newValue": "B62new"},
                ],
            }
        ],
    }


def test_same_encoding_different_token_kind_is_unchanged(engine):
    before = [{"id": "a", "key": OpaqueToken.public_key("B62x")}]
    after = [{"id": "a", "key": OpaqueToken("field", "B62x")}]
    assert engine.diff(before, after).is_empty()


def test_appended_operation_is_the_only_change(engine, three_ops, make_op):
    extra = make_op("fresh", depth=1)
    changes = engine.diff(three_ops, three_ops + [extra])
    assert [(e.path, e.node) for e in changes.added] == [("accountUpdate[3]", extra)]
    assert changes.removed == []
    assert changes.updated == []


def test_records_built_with_tuples_diff_cleanly(engine):
    before = [OperationRecord(id="x", body={"update": {"appState": ("1", "2")}})]
    after = [OperationRecord(id="x", body={"update": {"appState": ("1", "3")}})]

    changes = engine.diff(before, after)

    assert before[0].body["update"]["appState"] == ["1", "2"]
    assert [u.path for u in changes.updated] == ["accountUpdate[0].body.update.appState"]
    assert changes.updated[0].changes[0].new_value == ["1", "3"]


def test_record_body_host_keys_become_tokens():
    class _Key:
        def toBase58(self):
            return "B62host"

    record = OperationRecord(id="x", body={"publicKey": _Key()})
    assert record.body["publicKey"] == OpaqueToken.public_key("B62host")
    assert record.account_address() == "B62host"


def test_record_body_must_be_a_mapping():
    with pytest.raises(AutraceError) as exc:
        OperationRecord(id="x", body=["not", "a", "record"])
    assert exc.value.code is ErrorCode.RECORD_INVALID
