"""Named, versioned script collection replayed by the HTTP trigger.

The format follows the Postman v2.1 collection layout: ``info`` carries the
name and version, ``item`` holds folders (which hold further ``item`` lists)
and requests. Each request may add a ``capture`` map of
``variable -> dotted JSON path`` used to pull values out of the response.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import TriggerExecutionError


class KeyValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    value: str = ""
    disabled: bool = False


class UrlSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    raw: str


class BodySpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mode: str = "raw"
    raw: str = ""
    urlencoded: List[KeyValue] = Field(default_factory=list)


class RequestSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    method: str = "GET"
    url: Union[str, UrlSpec]
    header: List[KeyValue] = Field(default_factory=list)
    body: Optional[BodySpec] = None

    @property
    def raw_url(self) -> str:
        return self.url if isinstance(self.url, str) else self.url.raw


class ScriptItem(BaseModel):
    """A folder of requests, or a single request."""

    model_config = ConfigDict(extra="ignore")

    name: str
    request: Optional[RequestSpec] = None
    item: List["ScriptItem"] = Field(default_factory=list)
    capture: Dict[str, str] = Field(default_factory=dict)

    def requests(self) -> List["ScriptItem"]:
        if self.request is not None:
            return [self]
        found: List[ScriptItem] = []
        for child in self.item:
            found.extend(child.requests())
        return found


class CollectionInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    version: str = ""

    @field_validator("version", mode="before")
    @classmethod
    def _flatten_version(cls, value: Any) -> str:
        if isinstance(value, dict):
            parts = [value.get(k) for k in ("major", "minor", "patch")]
            return ".".join(str(p) for p in parts if p is not None)
        return "" if value is None else str(value)


class ScriptCollection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    info: CollectionInfo = Field(default_factory=CollectionInfo)
    item: List[ScriptItem] = Field(default_factory=list)

    @classmethod
    def load(cls, path: str | Path) -> "ScriptCollection":
        with open(path) as f:
            return cls.model_validate(json.load(f))

    def find(self, name: str) -> Optional[ScriptItem]:
        stack = list(reversed(self.item))
        while stack:
            node = stack.pop()
            if node.name == name:
                return node
            stack.extend(reversed(node.item))
        return None

    def select(self, steps: Sequence[str]) -> List[ScriptItem]:
        """Resolve step names into the ordered list of requests to send."""
        selected: List[ScriptItem] = []
        for step in steps:
            node = self.find(step)
            if node is None:
                raise TriggerExecutionError(
                    f"Step '{step}' not found in collection '{self.info.name}'",
                    step=step,
                )
            selected.extend(node.requests())
        return selected
