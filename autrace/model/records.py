"""
Operation records.

An OperationRecord is one account update of a transaction in canonical form.
Records are created once per analysis call and never mutated afterwards;
every call builds a new list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from autrace.errors import AutraceError, ErrorCode
from autrace.model.values import as_exact_int, canonicalize_value, is_integer_like

DEFAULT_RESOURCE_ID = "default"


class AuthorizationKind(str, Enum):
    NONE = "none"
    SIGNATURE = "signature"
    PROOF = "proof"

    @classmethod
    def parse(cls, raw: Any) -> "AuthorizationKind":
        """Accepts canonical values and o1js lazy kinds ("lazy-proof")."""
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").lower()
        if text.startswith("lazy-"):
            text = text[len("lazy-"):]
        try:
            return cls(text)
        except ValueError:
            return cls.NONE


class LifecyclePhase(str, Enum):
    BUILD = "build"
    DEPLOY = "deploy"
    PROVE = "prove"     # authorize by proof
    SIGN = "sign"       # authorize by signature
    SEND = "send"       # submit


@dataclass(frozen=True)
class OperationRecord:
    id: str
    label: str = "Unnamed Update"
    call_depth: int = 0
    resource_id: str = DEFAULT_RESOURCE_ID
    authorization_kind: AuthorizationKind = AuthorizationKind.NONE
    failed: bool = False
    failure_reason: Optional[str] = None
    body: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise AutraceError(ErrorCode.RECORD_MISSING_ID, "Operation record requires an id")
        if isinstance(self.call_depth, bool) or not isinstance(self.call_depth, int) or self.call_depth < 0:
            raise AutraceError(
                ErrorCode.RECORD_INVALID,
                f"call_depth must be a non-negative integer, got {self.call_depth!r}",
                details={"id": self.id},
            )
        if self.body is None:
            body = {}
        elif isinstance(self.body, Mapping):
            body = canonicalize_value(self.body)
        else:
            raise AutraceError(
                ErrorCode.RECORD_INVALID,
                f"body must be a mapping, got {type(self.body).__name__}",
                details={"id": self.id},
            )
        # frozen dataclass; tuples and host keys are normalized once here
        object.__setattr__(self, "body", body)

    def to_tree(self) -> Dict[str, Any]:
        """The record as the mapping the diff engine walks."""
        return {
            "id": self.id,
            "label": self.label,
            "callDepth": self.call_depth,
            "resourceId": self.resource_id,
            "authorizationKind": self.authorization_kind.value,
            "failed": self.failed,
            "failureReason": self.failure_reason,
            "body": self.body,
        }

    def account_address(self) -> str:
        key = self.body.get("publicKey")
        return "" if key is None else str(key)

    def signed_balance_change(self) -> int:
        """
        Balance change as an exact integer in base units.

        Accepts {"magnitude": "1000", "sgn": "Negative"}, a plain integer or a
        decimal integer string.
        """
        raw = self.body.get("balanceChange")
        if isinstance(raw, dict):
            magnitude = raw.get("magnitude", 0)
            if not is_integer_like(magnitude):
                return 0
            value = abs(as_exact_int(magnitude))
            return -value if str(raw.get("sgn", "Positive")).lower() == "negative" else value
        if is_integer_like(raw):
            return as_exact_int(raw)
        return 0

    def app_state(self) -> List[Any]:
        update = self.body.get("update")
        if not isinstance(update, dict):
            return []
        state = update.get("appState")
        return state if isinstance(state, list) else []

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_id: Optional[str] = None) -> "OperationRecord":
        """
        Lenient construction from an already-canonical mapping.

        Both camelCase (callDepth) and snake_case (call_depth) keys are read;
        call depth and token id fall back to the body when absent at the top.
        """
        body = data.get("body")
        if not isinstance(body, Mapping):
            body = {}

        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return default

        record_id = pick("id", default=default_id)
        depth = pick("callDepth", "call_depth", default=body.get("callDepth", 0))
        resource = pick("resourceId", "resource_id", default=body.get("tokenId")) or DEFAULT_RESOURCE_ID
        auth = pick("authorizationKind", "authorization_kind")
        if auth is None and isinstance(data.get("lazyAuthorization"), Mapping):
            auth = data["lazyAuthorization"].get("kind")

        return cls(
            id=str(record_id) if record_id is not None else "",
            label=str(pick("label", default="Unnamed Update")),
            call_depth=int(depth or 0),
            resource_id=str(resource),
            authorization_kind=AuthorizationKind.parse(auth),
            failed=bool(pick("failed", default=False)),
            failure_reason=pick("failureReason", "failure_reason"),
            body=body,
        )
