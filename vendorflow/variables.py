"""Ordered, key-unique variable set scoped to one workflow."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .contracts import Variable


def to_variable_value(value: Any) -> str:
    """Serialize ``value`` losslessly so the store stays a flat string map."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class VariableStore:
    """Named string variables consumed by the external trigger.

    Insertion order is preserved. Writing an existing key replaces the
    variable in place, so a key keeps the position of its first write.
    """

    def __init__(self, variables: Iterable[Variable] | None = None, name: str = "") -> None:
        self.name = name
        self._variables: Dict[str, Variable] = {}
        for var in variables or []:
            self.put(var)

    # ------------------------------------------------------------------
    def put(self, variable: Variable) -> None:
        self._variables[variable.key] = variable

    def set(self, key: str, value: str, type: str = "default") -> None:
        self.put(Variable(key=key, value=value, type=type))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        var = self._variables.get(key)
        return var.value if var is not None else default

    def __contains__(self, key: object) -> bool:
        return key in self._variables

    def __len__(self) -> int:
        return len(self._variables)

    def __iter__(self) -> Iterator[Variable]:
        return iter(list(self._variables.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VariableStore):
            return NotImplemented
        return list(self._variables.values()) == list(other._variables.values())

    def keys(self) -> List[str]:
        return list(self._variables)

    def as_dict(self, enabled_only: bool = True) -> Dict[str, str]:
        """Flat ``key -> value`` view used for placeholder resolution."""
        return {
            var.key: var.value
            for var in self._variables.values()
            if var.enabled or not enabled_only
        }

    def copy(self) -> "VariableStore":
        return VariableStore((v.model_copy() for v in self), name=self.name)

    # ------------------------------------------------------------------
    # Environment document (Postman format) conversion
    def to_document(self, document_id: str | None = None) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "name": self.name,
            "values": [v.model_dump() for v in self],
            "_postman_variable_scope": "environment",
        }
        if document_id:
            doc["id"] = document_id
        return doc

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "VariableStore":
        values = document.get("values") or []
        variables = [
            Variable(
                key=item["key"],
                value="" if item.get("value") is None else to_variable_value(item["value"]),
                type=item.get("type") or "default",
                enabled=item.get("enabled", True),
            )
            for item in values
            if item.get("key")
        ]
        return cls(variables, name=document.get("name", ""))
