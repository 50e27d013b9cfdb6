"""Per-run execution context and step-reference templating."""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from .errors import ReferenceResolutionError

_TOKEN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


class ExecutionContext:
    """Ledger carrying the trigger payload and accumulated step outputs.

    The executor is the only writer. Handlers receive a :meth:`scoped` view
    that exposes only the outputs of the node's own dependencies.
    """

    def __init__(
        self,
        workflow_id: str,
        execution_id: str,
        trigger_data: Any = None,
        step_results: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.workflow_id = workflow_id
        self.execution_id = execution_id
        self.trigger_data = trigger_data if trigger_data is not None else {}
        self._step_results: Dict[str, Any] = dict(step_results or {})

    @property
    def step_results(self) -> Mapping[str, Any]:
        return MappingProxyType(self._step_results)

    def record(self, node_id: str, output: Any) -> None:
        """Append a node's output; each node writes exactly once."""
        if node_id in self._step_results:
            raise ValueError(f"Result for node {node_id} already recorded")
        self._step_results[node_id] = output

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._step_results)

    def scoped(self, visible: Iterable[str]) -> "ExecutionContext":
        """Return a read-only copy limited to the ``visible`` node results."""
        visible = set(visible)
        return ExecutionContext(
            self.workflow_id,
            self.execution_id,
            self.trigger_data,
            {k: v for k, v in self._step_results.items() if k in visible},
        )

    # ------------------------------------------------------------------
    # Step references
    def resolve(self, reference: str) -> Any:
        """Resolve ``trigger[.path]`` or ``steps.<node_id>[.path]``."""
        parts = [p for p in reference.strip().split(".") if p]
        if not parts:
            raise ReferenceResolutionError("Empty step reference")
        head, rest = parts[0], parts[1:]
        if head == "trigger":
            value = self.trigger_data
        elif head == "steps":
            if not rest:
                raise ReferenceResolutionError(
                    f"Reference '{reference}' is missing a node id"
                )
            node_id, rest = rest[0], rest[1:]
            if node_id not in self._step_results:
                raise ReferenceResolutionError(
                    f"Reference '{reference}' points at node {node_id}, "
                    "which is not an upstream step"
                )
            value = self._step_results[node_id]
        else:
            raise ReferenceResolutionError(f"Unknown reference root: {head}")
        return _walk(value, rest, reference)

    def render(self, value: Any) -> Any:
        """Substitute ``{{ ... }}`` tokens in strings, dicts and lists."""
        if isinstance(value, str):
            whole = _TOKEN.fullmatch(value.strip())
            if whole:
                return self.resolve(whole.group(1))
            return _TOKEN.sub(lambda m: str(self.resolve(m.group(1))), value)
        if isinstance(value, dict):
            return {k: self.render(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.render(v) for v in value]
        return value


def _walk(value: Any, path: list[str], reference: str) -> Any:
    for segment in path:
        if isinstance(value, Mapping) and segment in value:
            value = value[segment]
        elif isinstance(value, (list, tuple)) and segment.lstrip("-").isdigit():
            try:
                value = value[int(segment)]
            except IndexError:
                raise ReferenceResolutionError(
                    f"Index {segment} out of range in '{reference}'"
                ) from None
        else:
            raise ReferenceResolutionError(
                f"Cannot resolve '{segment}' in '{reference}'"
            )
    return value
