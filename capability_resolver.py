"""
capability_resolver.py
Decides which records take part in code generation. A record is capable when it carries the
reflection marker itself or when any of its resolved bases is capable. External bases never are.
"""
import logging
import threading
from typing import Dict, List, Sequence, Union

from generation_errors import CyclicInheritanceError
from symbol_registry import SymbolRegistry

logger = logging.getLogger(__name__)


class _CycleSignal(Exception):
    """Raised internally while a cycle is still unwinding through its own members."""

    def __init__(self, cycle: Sequence[str]):
        super().__init__(" -> ".join(cycle))
        self.cycle = tuple(cycle)


def _rotate(cycle: Sequence[str], start: str) -> List[str]:
    i = list(cycle).index(start)
    return list(cycle[i:]) + list(cycle[:i])


class CapabilityResolver:
    def __init__(self, registry: SymbolRegistry):
        self.registry = registry
        self._memo: Dict[str, Union[bool, CyclicInheritanceError]] = {}
        self._lock = threading.Lock()

    def is_capable(self, qualified_name: str) -> bool:
        """
        Memoized capability check.
        Raises CyclicInheritanceError if the record is on an inheritance cycle or inherits from one.
        Unknown names are simply not capable.
        """
        return self._compute(qualified_name, [])

    def capable_records(self) -> List[str]:
        """Names of every capable record, in registration order. Cyclic records are left out."""
        result = []
        for decl in self.registry.declarations():
            try:
                if self.is_capable(decl.qualified_name):
                    result.append(decl.qualified_name)
            except CyclicInheritanceError:
                continue
        return result

    def _remember(self, qualified_name: str, value):
        with self._lock:
            value = self._memo.setdefault(qualified_name, value)
        if isinstance(value, CyclicInheritanceError):
            raise value
        return value

    def _compute(self, qualified_name: str, stack: List[str]) -> bool:
        cached = self._memo.get(qualified_name)
        if cached is not None:
            if isinstance(cached, CyclicInheritanceError):
                raise cached
            return cached
        decl = self.registry.resolve(qualified_name)
        if decl is None:
            return False
        if qualified_name in stack:
            raise _CycleSignal(stack[stack.index(qualified_name):])

        stack.append(qualified_name)
        try:
            # Every base is visited, even once the answer is known, so that cycles are always found.
            capable = decl.capable
            for base in decl.bases:
                target = self.registry.resolve_base(base)
                if target is None:
                    continue
                try:
                    if self._compute(target.qualified_name, stack):
                        capable = True
                except CyclicInheritanceError as err:
                    error = CyclicInheritanceError(qualified_name, err.cycle, decl.location,
                                                   via=target.qualified_name)
                    logger.debug(error.message)
                    return self._remember(qualified_name, error)
        except _CycleSignal as signal:
            error = CyclicInheritanceError(qualified_name, _rotate(signal.cycle, qualified_name), decl.location)
            if qualified_name != signal.cycle[0]:
                with self._lock:
                    self._memo.setdefault(qualified_name, error)
                raise
            logger.debug(error.message)
            return self._remember(qualified_name, error)
        finally:
            stack.pop()

        logger.debug(f"{qualified_name}: capable={capable}")
        return self._remember(qualified_name, capable)
