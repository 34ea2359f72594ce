"""Dynamic dispatch: resolve (class-of(receiver), selector) to a handler and invoke it.

Resolution walks the receiver's class and then its bases; the first class that
defines the selector wins. A send nobody understands is reported and yields
nil; it never aborts execution.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from kestrel.errors import KestrelError, KestrelStackOverflow, KestrelTypeError
from kestrel.types.classes import class_of
from kestrel.types.objects import MessageHandler, Primitive
from kestrel.types.printer import print_value
from kestrel.types.symbol import is_symbol, symbol
from kestrel.types.value import Value, NIL

log = logging.getLogger(__name__)


def as_selector(selector: Value | str) -> Value:
    if isinstance(selector, str):
        return symbol(selector)
    return selector


def lookup_handler(receiver: Value, selector: Value) -> Optional[MessageHandler]:
    if not is_symbol(selector):
        return None
    return class_of(receiver).lookup(selector.obj)


def not_understood(receiver: Value, selector: Value, where: str | None = None) -> Value:
    log.warning(
        "%s: %s (%s) does not understand #%s",
        where or "<send>",
        print_value(receiver),
        class_of(receiver).display_name(),
        print_value(selector),
    )
    return NIL


def check_arity(handler: MessageHandler, argc: int, where: str | None = None) -> bool:
    """argc counts the receiver. A mismatch is reported and the send yields nil."""
    expected = handler.callable.arity
    if expected is None or expected == argc:
        return True
    log.warning(
        "%s: #%s expects %d argument(s) including the receiver, got %d",
        where or "<send>", handler.selector.text, expected, argc,
    )
    return False


def invoke(vm, receiver: Value, selector: Value | str, args: Sequence[Value]) -> Value:
    """Dispatch on behalf of `vm`; KestrelError propagates to the caller."""
    selector = as_selector(selector)
    handler = lookup_handler(receiver, selector)
    if handler is None:
        return not_understood(receiver, selector)
    argc = len(args) + 1
    if not check_arity(handler, argc):
        return NIL
    if vm.reentry >= vm.max_reentry:
        raise KestrelStackOverflow(
            f"Nested sends exceeded {vm.max_reentry} levels at #{print_value(selector)}"
        )
    target = handler.callable
    if isinstance(target, Primitive):
        vm.reentry += 1
        try:
            result = target.fn(vm, [receiver, *args])
        finally:
            vm.reentry -= 1
        if not isinstance(result, Value):
            raise KestrelTypeError(f"Primitive {target.name} returned {result!r}, not a Value")
        return result
    from kestrel.compiler.apply_vm import call_method_vm
    return call_method_vm(vm.env, receiver, selector, list(args),
                          depth_offset=vm.depth, reentry=vm.reentry + 1)


def send_message(receiver: Value, selector: Value | str, args: Sequence[Value] = (), env=None) -> Value:
    """Send `selector` to `receiver` outside of any bytecode program.

    Returns the handler's result, or nil when the send is not understood or
    its execution is aborted.
    """
    from kestrel.compiler.vm import VM
    if env is None:
        from kestrel.builtin.primitives import default_environment
        env = default_environment()
    vm = VM(env)
    try:
        return invoke(vm, receiver, selector, args)
    except KestrelError as ex:
        log.error("Send of #%s aborted: %s", print_value(as_selector(selector)), ex)
        return NIL
