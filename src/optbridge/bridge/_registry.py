"""The handle registry: opaque, type-tagged tokens for engine objects."""

from __future__ import annotations

import itertools
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from optbridge.enums import TypeTag
from optbridge.exceptions import TypeMismatchError

from ._guard import _EXECUTION_TOKEN
from ._ownership import on_last_release

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

_TYPE_NAMES: Final = {
    TypeTag.FUNCTION: "Function",
    TypeTag.PROBLEM: "Problem",
    TypeTag.SOLVER: "Solver",
    TypeTag.SOLVER_STATE: "SolverState",
    TypeTag.OPTIMIZATION_LOGGER: "OptimizationLogger",
    TypeTag.RESULT: "Result",
    TypeTag.RESULT_WITH_WARNINGS: "ResultWithWarnings",
    TypeTag.SOLVER_ERROR: "SolverError",
    TypeTag.MULTIPLEXER: "Callback multiplexer",
    TypeTag.SOLVER_CALLBACK: "Solver callback",
}


@dataclass(slots=True)
class _Entry:
    tag: TypeTag
    obj: Any
    detached: bool = False


class Handle:
    """An opaque token standing for an engine object.

    Handles are created by a [`HandleRegistry`][optbridge.bridge.HandleRegistry]
    and are the only way host code refers to engine objects. A handle carries
    a type tag and a token indexing the registry; it holds no reference to the
    engine object itself.

    When the last reference to a handle disappears, the registry removes the
    engine object and runs the destructor registered for its tag. This
    happens exactly once, also when
    [`release`][optbridge.bridge.HandleRegistry.release] was called before.
    """

    __slots__ = ("__weakref__", "_finalizer", "_registry", "_tag", "_token")

    def __init__(self, registry: HandleRegistry, tag: TypeTag, token: int) -> None:
        self._registry = registry
        self._tag = tag
        self._token = token
        self._finalizer = weakref.finalize(self, registry._release, token)  # noqa: SLF001

    @property
    def tag(self) -> TypeTag:
        """Return the type tag of the handle.

        Returns:
            The type tag.
        """
        return self._tag

    @property
    def alive(self) -> bool:
        """Return whether the engine object of the handle still exists.

        Returns:
            `True` if the handle has not been released.
        """
        return self._finalizer.alive

    def __repr__(self) -> str:
        state = "" if self.alive else ", released"
        return f"<Handle {self._tag.value} #{self._token}{state}>"


class HandleRegistry:
    """An arena of engine objects indexed by boundary-safe tokens.

    Each entry stores the type tag and the engine object. Destructors are
    registered per type tag, and are invoked with the engine object when its
    handle is released.

    The registry may be used recursively: a destructor, or a host callable
    running during an evaluation, may create and release other handles.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._entries: dict[int, _Entry] = {}
        self._destructors: dict[TypeTag, Callable[[Any], None]] = {}
        self._tokens = itertools.count(1)

    def register_destructor(
        self, tag: TypeTag, destructor: Callable[[Any], None]
    ) -> None:
        """Register the destructor for a type tag.

        Args:
            tag:        The type tag.
            destructor: Function called with the engine object on release.

        Raises:
            ValueError: If a destructor was already registered for the tag.
        """
        if tag in self._destructors:
            msg = f"Duplicate destructor for tag: {tag.value}"
            raise ValueError(msg)
        self._destructors[tag] = destructor

    def wrap(self, obj: Any, tag: TypeTag) -> Handle:  # noqa: ANN401
        """Store an engine object and return a handle for it.

        Args:
            obj: The engine object.
            tag: The type tag of the object.

        Returns:
            A new handle.
        """
        with _EXECUTION_TOKEN:
            token = next(self._tokens)
            self._entries[token] = _Entry(tag=tag, obj=obj)
        logger.debug("wrapped %s as #%d", tag.value, token)
        return Handle(self, tag, token)

    def unwrap(self, handle: Any, expected: TypeTag | Iterable[TypeTag]) -> Any:  # noqa: ANN401
        """Retrieve the engine object of a handle, checking its type tag.

        Args:
            handle:   The handle, as passed by host code.
            expected: The expected tag, or a collection of accepted tags.

        Returns:
            The engine object.

        Raises:
            TypeMismatchError: If `handle` is not a handle of this registry,
                               has the wrong tag, or was released.
        """
        tags = (expected,) if isinstance(expected, TypeTag) else tuple(expected)
        name = _TYPE_NAMES[tags[0]]
        if not isinstance(handle, Handle) or handle._registry is not self:  # noqa: SLF001
            msg = f"Invalid {name} given: {type(handle).__name__} is not a handle"
            raise TypeMismatchError(msg)
        if handle.tag not in tags:
            msg = f"{name} object expected but another type was passed"
            raise TypeMismatchError(msg)
        with _EXECUTION_TOKEN:
            entry = self._entries.get(handle._token)  # noqa: SLF001
        if entry is None or entry.detached:
            msg = f"{name} object has been released"
            raise TypeMismatchError(msg)
        return entry.obj

    def release(self, handle: Handle) -> None:
        """Release a handle before the host drops it.

        Runs the destructor of the engine object now. If engine objects still
        hold shared references acquired with the handle as owner, the handle
        can no longer be used by host code, and the destructor runs when the
        last of these references is released. Calling this more than once, or
        dropping the handle afterwards, has no further effect.

        Args:
            handle: The handle to release.
        """
        finalizer = handle._finalizer  # noqa: SLF001
        with _EXECUTION_TOKEN:
            entry = self._entries.get(handle._token)  # noqa: SLF001
            if entry is not None and on_last_release(handle, finalizer):
                entry.detached = True
                logger.debug("detached %s #%d", entry.tag.value, handle._token)  # noqa: SLF001
                return
        finalizer()

    def _release(self, token: int) -> None:
        with _EXECUTION_TOKEN:
            entry = self._entries.pop(token, None)
            if entry is None:
                return
            logger.debug("releasing %s #%d", entry.tag.value, token)
            destructor = self._destructors.get(entry.tag)
            if destructor is not None:
                destructor(entry.obj)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handle: object) -> bool:
        return (
            isinstance(handle, Handle)
            and handle._registry is self  # noqa: SLF001
            and handle._token in self._entries  # noqa: SLF001
        )


REGISTRY: Final = HandleRegistry()
"""The registry used by the boundary surface in [`optbridge.wrap`][]."""
