"""Pytest configuration for autrace."""
import os

import pytest

from autrace.base.config import AutraceConfig, set_config
from autrace.model.records import DEFAULT_RESOURCE_ID, OperationRecord
from autrace.model.values import OpaqueToken


def pytest_configure():
    # Keep test runs independent of the developer's shell.
    os.environ.setdefault("AUTRACE_LOG_LEVEL", "DEBUG")


@pytest.fixture(autouse=True)
def default_config():
    config = AutraceConfig()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def make_op():
    """Factory for account updates with a Mina-shaped body."""

    def _make(
        op_id,
        depth=0,
        address=None,
        resource_id=DEFAULT_RESOURCE_ID,
        failed=False,
        failure_reason=None,
        label=None,
        app_state=None,
        balance=0,
        call_data="0",
        permissions=None,
        **extra,
    ):
        body = {
            "publicKey": OpaqueToken.public_key(address or f"B62{op_id}"),
            "balanceChange": {
                "magnitude": str(abs(balance)),
                "sgn": "Negative" if balance < 0 else "Positive",
            },
            "callData": call_data,
            "update": {
                "appState": list(app_state) if app_state is not None else ["0"] * 8,
                "permissions": dict(permissions or {"send": "signature", "editState": "proof"}),
            },
        }
        body.update(extra)
        return OperationRecord(
            id=op_id,
            label=label or f"Update {op_id}",
            call_depth=depth,
            resource_id=resource_id,
            failed=failed,
            failure_reason=failure_reason,
            body=body,
        )

    return _make
