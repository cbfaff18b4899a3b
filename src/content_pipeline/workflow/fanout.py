"""
Parallel Fan-out / Fan-in Coordinator

Runs independent channel tasks concurrently on one shared input state and
merges their patches. Each task gets its own read-only deep copy of the
state and declares up front which fields it writes; the declared sets must
not overlap.

Fan-in is all-or-nothing: if any task fails, every failure is logged and the
first one (in declaration order) is re-raised. Nothing is merged.
"""

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence

from ..errors import FanOutMergeError


logger = logging.getLogger("workflow.fanout")


@dataclass(frozen=True)
class ChannelTask:
    """One fan-out branch: a name, the work, and the fields it may write."""
    name: str
    run: Callable[[Mapping[str, Any]], Dict[str, Any]]
    writes: FrozenSet[str]


class FanOutCoordinator:
    """Runs a fixed set of ChannelTasks in parallel and unions their patches."""

    def __init__(self, tasks: Sequence[ChannelTask], max_workers: Optional[int] = None):
        """
        Args:
            tasks: Channel tasks in declaration order
            max_workers: Thread pool size (defaults to one thread per task)

        Raises:
            ValueError: If task names repeat or declared write sets overlap
        """
        self.tasks = list(tasks)
        self.max_workers = max_workers or max(len(self.tasks), 1)

        names = [task.name for task in self.tasks]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate channel task names: {names}")

        claimed: Dict[str, str] = {}
        for task in self.tasks:
            for field_name in task.writes:
                if field_name in claimed:
                    raise ValueError(
                        f"Channels '{claimed[field_name]}' and '{task.name}' both write '{field_name}'"
                    )
                claimed[field_name] = task.name

    def run(self, state: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Run every task and merge the results.

        Args:
            state: Shared input state (never modified)

        Returns:
            Union of all task patches
        """
        if not self.tasks:
            return {}

        results: Dict[str, Dict[str, Any]] = {}
        errors: Dict[str, BaseException] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                task.name: executor.submit(task.run, MappingProxyType(copy.deepcopy(dict(state))))
                for task in self.tasks
            }

            # Wait for every branch to settle before deciding anything
            for task in self.tasks:
                try:
                    results[task.name] = futures[task.name].result()
                except Exception as e:
                    logger.error(f"Channel '{task.name}' failed: {e}")
                    errors[task.name] = e

        if errors:
            first = next(task.name for task in self.tasks if task.name in errors)
            logger.error(
                f"Fan-out aborted: {len(errors)}/{len(self.tasks)} channel(s) failed, nothing merged"
            )
            raise errors[first]

        return self._merge(results)

    def _merge(self, results: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for task in self.tasks:
            patch = results[task.name] or {}
            undeclared = set(patch) - set(task.writes)
            if undeclared:
                raise FanOutMergeError(
                    f"Channel '{task.name}' wrote undeclared field(s): {sorted(undeclared)}"
                )
            collisions = set(patch) & set(merged)
            if collisions:
                raise FanOutMergeError(
                    f"Channel '{task.name}' collides on field(s): {sorted(collisions)}"
                )
            merged.update(patch)

        logger.info(f"Fan-in merged {len(self.tasks)} channel(s): {sorted(merged)}")
        return merged

    @property
    def channel_names(self) -> List[str]:
        return [task.name for task in self.tasks]
