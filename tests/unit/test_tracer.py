from autrace.analysis.flow import EdgeType, FlowGraph
from autrace.base.config import NATIVE_TOKEN_ID
from autrace.model.records import AuthorizationKind, LifecyclePhase, OperationRecord
from autrace.trace.tracer import TransactionTracer, is_contract


def _payload():
    return {
        "txHash": "5JuTrace",
        "txStatus": "applied",
        "blockHeight": 10,
        "feePayerAddress": "B62qfee00000",
        "memo": "trace",
        "updatedAccounts": [
            {
                "accountAddress": "B62qfee00000",
                "tokenId": NATIVE_TOKEN_ID,
                "totalBalanceChange": "-1.5",
                "update": {"permissions": {"incrementNonce": "signature"}},
            },
            {
                "accountAddress": "B62qapp11111",
                "isZkappAccount": True,
                "tokenId": NATIVE_TOKEN_ID,
                "update": {"permissions": {"editState": "proof"}, "appState": ["3"]},
            },
            {
                "accountAddress": "B62qapp11111",
                "callDepth": 1,
                "tokenId": NATIVE_TOKEN_ID,
                "totalBalanceChange": "0.5",
            },
        ],
        "failures": [],
    }


def test_transaction_state_summary():
    tracer = TransactionTracer(clock=lambda: 0)
    state = tracer.get_transaction_state(_payload())

    ids = ["5JuTrace-0", "5JuTrace-1", "5JuTrace-2"]
    assert list(state.nodes) == ids
    assert state.nodes[ids[0]]["type"] == "account"
    assert state.nodes[ids[1]]["type"] == "contract"
    assert state.nodes[ids[0]]["publicKey"] == "B62qfee00000"

    assert state.metadata.operation_count == 3
    assert state.metadata.total_proofs == 1
    assert state.metadata.total_signatures == 1
    assert state.metadata.total_fees == 1_500_000_000

    assert state.balance_states[ids[0]] == [0, -1_500_000_000]
    assert state.balance_states[ids[2]] == [0, 500_000_000]

    assert state.relationships[ids[2]].parent_id == ids[1]
    # both top-level updates sit on the native token, so the later one links under the first
    assert state.relationships[ids[1]].parent_id == ids[0]
    assert state.relationships[ids[0]].parent_id is None

    assert isinstance(state.flow_graph, FlowGraph)
    edge_types = {e.key: e.edge_type for e in state.flow_graph.edges}
    assert edge_types[(ids[1], ids[2])] is EdgeType.CALL_DEPTH
    assert edge_types[(ids[0], ids[1])] is EdgeType.FEE_PAYER

    assert state.blockchain_data["txHash"] == "5JuTrace"
    assert state.blockchain_data["status"] == "applied"


def test_state_history_accumulates_and_engine_resets():
    tracer = TransactionTracer()
    first = tracer.get_transaction_state(_payload())
    second = tracer.get_transaction_state([OperationRecord(id="solo")])

    assert tracer.get_state_history() == (first, second)
    assert list(tracer.get_relationships()) == ["solo"]
    assert second.blockchain_data is None


def test_get_transactions_skips_empty_inputs():
    tracer = TransactionTracer()
    states = tracer.get_transactions(_payload(), None, [OperationRecord(id="x")])
    assert len(states) == 2


def test_malformed_transaction_still_produces_state():
    state = TransactionTracer().get_transaction_state({"updatedAccounts": "nope", "txHash": "5Jbad"})
    assert state.nodes == {}
    assert state.flow_graph.edges == []
    assert state.metadata.operation_count == 0


def test_snapshots_through_tracer():
    tracer = TransactionTracer(clock=lambda: 42)
    tracer.take_snapshot({"accountUpdates": [{"id": "a", "body": {"callData": "0"}}]}, "build")
    snap = tracer.take_snapshot({"accountUpdates": [{"id": "a", "body": {"callData": "9"}}]}, LifecyclePhase.SEND)

    assert len(tracer.get_snapshots()) == 2
    assert snap.timestamp == 42
    assert [u.path for u in snap.changes.updated] == ["accountUpdate[0].body.callData"]


def test_build_flow_graph_and_clear(make_op):
    tracer = TransactionTracer()
    edges = tracer.build_flow_graph([make_op("a"), make_op("b")])
    assert [(e.source, e.target) for e in edges] == [("a", "b")]

    tracer.get_transaction_state([make_op("a")])
    tracer.clear_transaction_state()
    assert tracer.hierarchy.relationships == {}


def test_is_contract_signals():
    assert is_contract(OperationRecord(id="a", label="Deploy zkApp"))
    assert is_contract(OperationRecord(id="b", authorization_kind=AuthorizationKind.PROOF))
    assert is_contract(OperationRecord(id="c", body={"update": {"verificationKey": {"data": "vk"}}}))
    assert not is_contract(OperationRecord(id="d", body={"update": {"verificationKey": {"data": None}}}))


def test_relationship_edges_follow_hierarchy(make_op):
    state = TransactionTracer().get_transaction_state([
        make_op("root", label="Dex.swap()"),
        make_op("child", depth=1, label="Token.transfer()", app_state=["0", "250"]),
        make_op("broken", depth=1, failed=True, app_state=["x1"]),
    ])

    assert [e.to_dict() for e in state.edges] == [
        {
            "id": "op1",
            "fromNode": "root",
            "toNode": "child",
            "operation": {
                "sequence": 1,
                "type": "transfer",
                "status": "success",
                "amount": {"value": 250, "denomination": "state"},
            },
        },
        {
            "id": "op2",
            "fromNode": "root",
            "toNode": "broken",
            "operation": {"sequence": 2, "type": "update", "status": "failed"},
        },
    ]


def test_relationship_edges_for_flat_transaction():
    state = TransactionTracer().get_transaction_state([OperationRecord(id="solo")])
    assert state.edges == []


def test_build_flow_graph_accepts_canonical_mappings():
    tracer = TransactionTracer()
    edges = tracer.build_flow_graph([{"id": "a"}, {"id": "b", "label": "Token.mint()"}, "junk"])
    assert [(e.source, e.target, e.edge_type) for e in edges] == [("a", "b", EdgeType.SEQUENCE)]

    wrapped = tracer.build_flow_graph({"accountUpdates": [{"id": "x"}, {"id": "y"}]})
    assert [(e.source, e.target) for e in wrapped] == [("x", "y")]
    assert tracer.build_flow_graph(None) == []
