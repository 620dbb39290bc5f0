# src/pipeline/ref_resolver.py — v1
"""Resolve {"$ref": "..."} markers in recipe step args.

Syntax:
    {"$ref": "task.description"}            -> task metadata
    {"$ref": "discovery.matches[0].path"}   -> cache slot, array index, field

Rules:
    - Dot traversal: a.b.c navigates nested objects.
    - Array indexing: a trailing [N] on any segment takes element N.
    - Root namespaces: "task" is task metadata, anything else a cache slot.
    - A cache slot carrying "data" is entered through it, so paths read
      as if slots were flat records.
    - A missing or null node at any segment raises RefResolutionError.
    - No JSONPath, no filters, no wildcards, no expressions.
"""

from __future__ import annotations

import copy
import re
from typing import Any

REF_KEY = "$ref"
TASK_ROOT = "task"

_INDEX_PATTERN = re.compile(r"^(.+?)\[(\d+)]$")


class RefResolutionError(Exception):
    """Raised when a $ref path cannot be resolved.

    Attributes:
        ref_path: The full original reference path.
        failed_segment: The segment at which resolution stopped.
        detail: Human-readable reason.
    """

    def __init__(self, ref_path: Any, failed_segment: str, detail: str) -> None:
        super().__init__(
            f"$ref resolution failed: '{ref_path}' at segment '{failed_segment}': {detail}"
        )
        self.ref_path = ref_path
        self.failed_segment = failed_segment
        self.detail = detail


def is_ref(node: Any) -> bool:
    """Whether node is a reference marker object."""
    return isinstance(node, dict) and REF_KEY in node


class RefResolver:
    """Expands reference markers against task metadata and the run cache.

    Stateless; one instance can serve every run.
    """

    def resolve_args(
        self,
        args: dict[str, Any] | None,
        task: dict[str, Any] | None,
        cache: dict[str, Any] | None,
    ) -> dict[str, Any]:
        """Resolve all $ref objects in a step's args template.

        Plain objects are rebuilt field by field, marker objects are
        replaced by their resolved value, arrays and scalars pass through
        unchanged.

        Args:
            args: The args template from the recipe step.
            task: Task metadata (description, initial_args, args).
            cache: Current cache, slot name -> slot record.

        Returns:
            Resolved args, ready for a tool call.

        Raises:
            RefResolutionError: If any reference fails, or the template does
                not produce an object.
        """
        if args is None:
            return {}
        resolved = self._resolve_node(args, task, cache)
        if not isinstance(resolved, dict):
            ref_path = args.get(REF_KEY) if is_ref(args) else None
            raise RefResolutionError(ref_path, "(root)", "args must resolve to an object")
        return resolved

    def resolve_ref(
        self,
        ref_path: Any,
        task: dict[str, Any] | None,
        cache: dict[str, Any] | None,
    ) -> Any:
        """Resolve a single $ref path string.

        Args:
            ref_path: e.g. "task.description" or "discovery.matches[0].path".
            task: Task metadata.
            cache: Cache slots.

        Returns:
            A deep copy of the resolved node.

        Raises:
            RefResolutionError: If any segment resolves to a missing or null
                node, or an index is out of bounds.
        """
        if not isinstance(ref_path, str) or not ref_path.strip():
            raise RefResolutionError(ref_path, "(root)", "empty ref path")

        segments = ref_path.split(".")
        current = self._resolve_root(ref_path, segments[0], task, cache)

        for segment in segments[1:]:
            current = _step(ref_path, current, segment)

        return copy.deepcopy(current)

    def _resolve_node(
        self, node: Any, task: dict[str, Any] | None, cache: dict[str, Any] | None
    ) -> Any:
        if is_ref(node):
            return self.resolve_ref(node[REF_KEY], task, cache)
        if isinstance(node, dict):
            return {
                key: self._resolve_node(value, task, cache)
                for key, value in node.items()
            }
        # Arrays and scalars pass through
        return copy.deepcopy(node)

    def _resolve_root(
        self,
        ref_path: str,
        root: str,
        task: dict[str, Any] | None,
        cache: dict[str, Any] | None,
    ) -> Any:
        name, index = _split_index(root)

        if name == TASK_ROOT:
            if task is None:
                raise RefResolutionError(ref_path, TASK_ROOT, "task metadata is null")
            current: Any = task
        else:
            current = (cache or {}).get(name)
            if current is None:
                raise RefResolutionError(ref_path, name, "cache slot not found")
            # Pointer slots keep the parsed tool output under "data"
            if isinstance(current, dict) and "data" in current:
                current = current["data"]
                if current is None:
                    raise RefResolutionError(ref_path, name, "cache slot data is null")

        if index is not None:
            current = _index(ref_path, current, root, index)
        return current


def _split_index(segment: str) -> tuple[str, int | None]:
    """Split "name[3]" into ("name", 3); plain names get index None."""
    match = _INDEX_PATTERN.match(segment)
    if match is None:
        return segment, None
    return match.group(1), int(match.group(2))


def _step(ref_path: str, current: Any, segment: str) -> Any:
    name, index = _split_index(segment)
    if not isinstance(current, dict) or current.get(name) is None:
        raise RefResolutionError(ref_path, name, "field not found")
    current = current[name]
    if index is not None:
        current = _index(ref_path, current, segment, index)
    return current


def _index(ref_path: str, current: Any, segment: str, index: int) -> Any:
    if not isinstance(current, list) or index >= len(current):
        raise RefResolutionError(ref_path, segment, f"array index out of bounds: {index}")
    value = current[index]
    if value is None:
        raise RefResolutionError(ref_path, segment, f"array element {index} is null")
    return value
