"""Ownership glue between host-owned objects and engine data structures.

Two reference disciplines are used at the boundary, and they are kept as
distinct types so that each call site shows which one applies:

- [`SharedRef`][optbridge.bridge.SharedRef]: the engine keeps a host object
  alive for an unbounded time, for instance a constraint stored in a problem.
  Created by [`acquire`][optbridge.bridge.acquire], which increments the host
  reference count of the owner once. The count is decremented once, when the
  last copy of the reference is reset or collected.
- [`Borrowed`][optbridge.bridge.Borrowed]: the engine lends an object to host
  code for the duration of a single call. No ownership is transferred, and
  the reference is invalidated when the call returns.
"""

from __future__ import annotations

import logging
import weakref
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Host reference counts held by the engine, keyed by the id of the owner. The
# owner itself is kept alive by the finalizer of each acquisition.
_HOST_COUNTS: Final[dict[int, int]] = {}

# Actions run when the last acquisition of an owner is released.
_ON_LAST_RELEASE: Final[dict[int, Callable[[], None]]] = {}


def host_refcount(owner: object) -> int:
    """Return the number of outstanding acquisitions of a host object.

    Args:
        owner: The host object.

    Returns:
        The number of acquisitions not yet released.
    """
    return _HOST_COUNTS.get(id(owner), 0)


def on_last_release(owner: object, action: Callable[[], None]) -> bool:
    """Defer an action until the last acquisition of a host object is released.

    Args:
        owner:  The host object.
        action: The action to run.

    Returns:
        `False` if `owner` has no outstanding acquisitions, in which case the
        action is not registered and the caller should run it now.
    """
    key = id(owner)
    if key not in _HOST_COUNTS:
        return False
    _ON_LAST_RELEASE[key] = action
    return True


def _incref(owner: object) -> None:
    key = id(owner)
    _HOST_COUNTS[key] = _HOST_COUNTS.get(key, 0) + 1


def _decref(owner: object) -> None:
    key = id(owner)
    count = _HOST_COUNTS[key] - 1
    assert count >= 0
    action = None
    if count == 0:
        del _HOST_COUNTS[key]
        action = _ON_LAST_RELEASE.pop(key, None)
    else:
        _HOST_COUNTS[key] = count
    logger.debug("released %s, %d acquisition(s) left", type(owner).__name__, count)
    if action is not None:
        action()


class _ControlBlock:
    __slots__ = ("__weakref__", "copies", "finalizer")

    def __init__(self, owner: object | None) -> None:
        self.copies = 1
        self.finalizer = (
            None if owner is None else weakref.finalize(self, _decref, owner)
        )

    def release(self) -> None:
        self.copies -= 1
        if self.copies == 0 and self.finalizer is not None:
            self.finalizer()


class SharedRef(Generic[T]):
    """A shared-ownership reference to an engine object with a host owner.

    All copies made with [`copy`][optbridge.bridge.SharedRef.copy] share a
    single acquisition of the owner. The host reference count is decremented
    when the last copy is [`reset`][optbridge.bridge.SharedRef.reset], or when
    all copies have been garbage collected, whichever happens first.

    References without an owner (`owner=None`) are owned by the engine alone
    and do not touch any host reference count.
    """

    __slots__ = ("_control", "_obj", "_owner")

    def __init__(
        self, obj: T, owner: object | None, control: _ControlBlock
    ) -> None:
        """Initialize a reference; use [`acquire`][optbridge.bridge.acquire].

        Args:
            obj:     The referenced object.
            owner:   The host object owning `obj`.
            control: The control block shared by all copies.
        """
        self._obj: T | None = obj
        self._owner = owner
        self._control: _ControlBlock | None = control

    def get(self) -> T:
        """Return the referenced object.

        Returns:
            The referenced object.

        Raises:
            ReferenceError: If the reference was reset.
        """
        if self._obj is None:
            msg = "shared reference used after reset"
            raise ReferenceError(msg)
        return self._obj

    @property
    def owner(self) -> object | None:
        """Return the host object owning the referenced object.

        Returns:
            The owner, or `None` for engine-owned or reset references.
        """
        return self._owner

    def copy(self) -> SharedRef[T]:
        """Return a new copy sharing the acquisition of this reference.

        Returns:
            The copy.

        Raises:
            ReferenceError: If the reference was reset.
        """
        if self._control is None or self._obj is None:
            msg = "cannot copy a shared reference after reset"
            raise ReferenceError(msg)
        self._control.copies += 1
        return SharedRef(self._obj, self._owner, self._control)

    def reset(self) -> None:
        """Drop this copy of the reference.

        Resetting the last copy releases the acquisition of the owner. Calling
        this on a reference that was already reset has no effect.
        """
        control, self._control = self._control, None
        self._obj = None
        self._owner = None
        if control is not None:
            control.release()

    def __bool__(self) -> bool:
        return self._obj is not None

    def __repr__(self) -> str:
        if self._obj is None:
            return "SharedRef(<reset>)"
        return f"SharedRef({self._obj!r})"


def acquire(obj: T, owner: object | None) -> SharedRef[T]:
    """Create a shared reference that keeps a host object alive.

    The host reference count of `owner` is incremented immediately, exactly
    once per call. Acquiring the same owner twice yields two independent
    acquisitions, each released on its own.

    Args:
        obj:   The engine object to reference.
        owner: The host object owning `obj`, or `None` if the engine owns it.

    Returns:
        The shared reference.
    """
    if owner is not None:
        _incref(owner)
        logger.debug(
            "acquired %s, %d acquisition(s)", type(owner).__name__, host_refcount(owner)
        )
    return SharedRef(obj, owner, _ControlBlock(owner))


class Borrowed(Generic[T]):
    """A non-owning reference, valid only during a single call.

    Use [`borrow`][optbridge.bridge.borrow] to create one for the duration of
    a `with` block.
    """

    __slots__ = ("_obj",)

    def __init__(self, obj: T) -> None:
        """Initialize the reference.

        Args:
            obj: The borrowed object.
        """
        self._obj: T | None = obj

    def get(self) -> T:
        """Return the borrowed object.

        Returns:
            The borrowed object.

        Raises:
            ReferenceError: If the call lending the object has returned.
        """
        if self._obj is None:
            msg = "borrowed object used after the call that lent it returned"
            raise ReferenceError(msg)
        return self._obj

    def invalidate(self) -> None:
        """Invalidate the reference."""
        self._obj = None

    def __bool__(self) -> bool:
        return self._obj is not None


@contextmanager
def borrow(obj: T) -> Iterator[Borrowed[T]]:
    """Lend an object for the duration of a `with` block.

    Args:
        obj: The object to lend.

    Yields:
        A borrowed reference, invalidated when the block exits.
    """
    ref = Borrowed(obj)
    try:
        yield ref
    finally:
        ref.invalidate()


def release_all(refs: Any) -> None:  # noqa: ANN401
    """Reset all shared references in an iterable.

    Args:
        refs: An iterable of shared references.
    """
    for ref in refs:
        ref.reset()
