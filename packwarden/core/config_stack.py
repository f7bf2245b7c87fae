# packwarden/core/config_stack.py
from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from packwarden.core.dictpath import getByPath

__all__ = ["ConfigScope", "SCOPE_ORDER", "mergeDeep", "ConfigLayer", "ConfigStack", "ConfigView"]



ConfigScope = Literal["defaults", "user", "pack", "cli"]
# Lowest to highest precedence
SCOPE_ORDER: tuple[ConfigScope, ...] = ("defaults", "user", "pack", "cli")



def mergeDeep(left: Any, right: Any) -> Any:
    """
    Deep merge of JSON-like trees:
      - dicts: recurse per key; a dict carrying "__merge": "replace" replaces the left side entirely
      - lists and scalars: right replaces left
    Inputs are never mutated.
    """
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if right.get("__merge") == "replace":
            return {key: copy.deepcopy(value) for key, value in right.items() if key != "__merge"}
        out: dict[str, Any] = {key: copy.deepcopy(value) for key, value in left.items()}
        for key, rightValue in right.items():
            if key == "__merge":
                continue
            leftValue = out.get(key)
            if isinstance(leftValue, Mapping) and isinstance(rightValue, Mapping):
                out[key] = mergeDeep(leftValue, rightValue)
            else:
                out[key] = copy.deepcopy(rightValue)
        return out
    return copy.deepcopy(right)



@dataclass(frozen=True)
class ConfigLayer:
    """One source of settings: `name` says where it came from, `scope` where it ranks."""
    name: str
    scope: ConfigScope
    data: dict[str, Any] = field(default_factory=dict)



class ConfigStack:
    """
    Layers ranked by scope; within one scope, later layers win.

    Every change bumps `version()` so views know when to re-merge.
    """
    def __init__(self, layers: list[ConfigLayer] | None = None):
        self._layers: list[ConfigLayer] = []
        self._version = 0
        for layer in layers or []:
            self.addLayer(layer)

    def addLayer(self, layer: ConfigLayer) -> None:
        if layer.scope not in SCOPE_ORDER:
            raise ValueError(f"Unknown config scope '{layer.scope}' for layer '{layer.name}'")
        self._layers.append(layer)
        self._version += 1

    def removeLayer(self, name: str) -> bool:
        kept = [layer for layer in self._layers if layer.name != name]
        if len(kept) == len(self._layers):
            return False
        self._layers = kept
        self._version += 1
        return True

    def layers(self) -> list[ConfigLayer]:
        """Layers in merge order, lowest precedence first."""
        return sorted(self._layers, key=lambda layer: SCOPE_ORDER.index(layer.scope))

    def version(self) -> int:
        return self._version

    def view(self) -> ConfigView:
        return ConfigView(stack=self)



class ConfigView:
    def __init__(self, *, stack: ConfigStack) -> None:
        self._stack = stack
        self._cache: tuple[int, dict[str, Any]] | None = None

    def effective(self) -> dict[str, Any]:
        """The merged tree; re-merged only after the stack changed."""
        version = self._stack.version()
        if self._cache is not None and self._cache[0] == version:
            return self._cache[1]
        merged: dict[str, Any] = {}
        for layer in self._stack.layers():
            merged = mergeDeep(merged, layer.data)
        self._cache = (version, merged)
        return merged

    def get(self, path: str, default: Any = None) -> Any:
        value = getByPath(self.effective(), path)
        return default if value is None else value
