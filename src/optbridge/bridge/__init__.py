"""The boundary layer between host code and the optimization engine.

Engine objects never cross the boundary directly: host code refers to them
through opaque [`Handle`][optbridge.bridge.Handle] tokens created by the
[`HandleRegistry`][optbridge.bridge.HandleRegistry]. Engine data structures
that keep host-owned objects alive hold them as
[`SharedRef`][optbridge.bridge.SharedRef] references, while objects lent to
host code for a single call are passed as
[`Borrowed`][optbridge.bridge.Borrowed] references.

Host callables bound to engine functions are invoked through
[`CallbackSlot`][optbridge.bridge.CallbackSlot] objects, parameter maps are
converted by the tagged-value codec, and solver outcomes are marshaled into
handles and structured records.

All entry points callable from host code are decorated with
[`entry_point`][optbridge.bridge.entry_point]: they run while holding a
process-wide re-entrant execution token, and record any failure so that it
can be retrieved with [`get_last_error`][optbridge.bridge.get_last_error].
"""

from ._dispatch import (
    CallbackDifferentiableFunction,
    CallbackFunction,
    CallbackSlot,
    CallbackTwiceDifferentiableFunction,
    SolverCallback,
    bind,
)
from ._guard import (
    clear_error,
    entry_depth,
    entry_point,
    fetch_callback_error,
    get_last_error,
    record_error,
    set_callback_error,
    swap_callback_error,
)
from ._marshal import (
    minimum,
    result_to_dict,
    result_with_warnings_to_dict,
    solver_error_to_dict,
)
from ._ownership import (
    Borrowed,
    SharedRef,
    acquire,
    borrow,
    host_refcount,
    release_all,
)
from ._registry import REGISTRY, Handle, HandleRegistry
from ._values import (
    get_parameters,
    set_parameter,
    set_parameters,
    to_host,
    to_native,
)

__all__ = [
    "REGISTRY",
    "Borrowed",
    "CallbackDifferentiableFunction",
    "CallbackFunction",
    "CallbackSlot",
    "CallbackTwiceDifferentiableFunction",
    "Handle",
    "HandleRegistry",
    "SharedRef",
    "SolverCallback",
    "acquire",
    "bind",
    "borrow",
    "clear_error",
    "entry_depth",
    "entry_point",
    "fetch_callback_error",
    "get_last_error",
    "get_parameters",
    "host_refcount",
    "minimum",
    "record_error",
    "release_all",
    "result_to_dict",
    "result_with_warnings_to_dict",
    "set_callback_error",
    "set_parameter",
    "set_parameters",
    "solver_error_to_dict",
    "swap_callback_error",
    "to_host",
    "to_native",
]
