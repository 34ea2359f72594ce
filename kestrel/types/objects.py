"""Heap objects.

Every heap object carries its class in its first slot (`klass`). Objects are
compared by identity and are never moved. Reclamation is left to the host:
once no Value refers to an object, Python's reference counting (and its
cycle collector for self-referential pair structures) frees it. Interned
symbols are the exception; the intern table keeps them alive for the life of
the process.
"""

from __future__ import annotations

from io import StringIO
from typing import Any, Iterator, Optional

from kestrel.types.value import Value, Tag


class HeapObject:
    __slots__ = ("klass",)

    def __init__(self, klass: Optional[Klass]):
        self.klass = klass


class Symbol(HeapObject):
    """Interned name. Create through kestrel.types.symbol.intern, never directly."""

    __slots__ = ("text",)

    def __init__(self, klass: Optional[Klass], text: str):
        super().__init__(klass)
        self.text = text

    def __repr__(self):
        return f"Symbol({self.text!r})"

    def __str__(self):
        return self.text


class Pair(HeapObject):
    """Cons cell; also an environment binding `(key . value)` and a scope `(bindings . parent)`."""

    __slots__ = ("head", "tail")

    def __init__(self, klass: Optional[Klass], head: Value, tail: Value):
        super().__init__(klass)
        self.head = head
        self.tail = tail

    def __repr__(self):
        return f"Pair({self.head!r}, {self.tail!r})"


class MessageHandler:
    """Binding of a selector symbol to a Primitive or CompiledMethod."""

    __slots__ = ("selector", "callable", "owner")

    def __init__(self, selector: Symbol, callable: Primitive | CompiledMethod, owner: Klass):
        self.selector = selector
        self.callable = callable
        self.owner = owner

    @property
    def is_primitive(self) -> bool:
        return isinstance(self.callable, Primitive)

    def __repr__(self):
        kind = "primitive" if self.is_primitive else "method"
        return f"<handler {self.owner.display_name()}>>{self.selector.text} ({kind})>"


class Klass(HeapObject):
    """A class: one optional base, handlers newest-first, and the value tag its instances use."""

    __slots__ = ("name", "base", "encoding", "handlers", "_index")

    def __init__(
        self,
        klass: Optional[Klass],
        name: Optional[Symbol],
        base: Optional[Klass] = None,
        encoding: Tag = Tag.OBJECT,
    ):
        super().__init__(klass)
        self.name = name
        self.base = base
        self.encoding = encoding
        # Newest first; the index maps a selector to its newest handler here.
        self.handlers: list[MessageHandler] = []
        self._index: dict[Symbol, MessageHandler] = {}

    def install(self, selector: Symbol, callable: Primitive | CompiledMethod) -> MessageHandler:
        """Prepend a handler; it shadows any earlier handler for the same selector."""
        handler = MessageHandler(selector, callable, self)
        self.handlers.insert(0, handler)
        self._index[selector] = handler
        return handler

    def own_handler(self, selector: Symbol) -> Optional[MessageHandler]:
        return self._index.get(selector)

    def ancestors(self) -> Iterator[Klass]:
        k: Optional[Klass] = self
        while k is not None:
            yield k
            k = k.base

    def lookup(self, selector: Symbol) -> Optional[MessageHandler]:
        """Walk the base chain; the first class defining `selector` wins."""
        for k in self.ancestors():
            handler = k._index.get(selector)
            if handler is not None:
                return handler
        return None

    def is_subclass_of(self, other: Klass) -> bool:
        return any(k is other for k in self.ancestors())

    def display_name(self) -> str:
        return self.name.text if self.name is not None else "<anonymous>"

    def __repr__(self):
        with StringIO() as buffer:
            buffer.write(f"<class {self.display_name()}")
            if self.base is not None:
                buffer.write(f" < {self.base.display_name()}")
            buffer.write(">")
            return buffer.getvalue()


class CompiledMethod(HeapObject):
    __slots__ = ("program",)

    def __init__(self, klass: Optional[Klass], program: Any):
        super().__init__(klass)
        self.program = program

    @property
    def arity(self) -> int:
        return self.program.arity

    @property
    def name(self) -> str:
        return self.program.name

    def __repr__(self):
        return f"<method {self.name} arity={self.arity}>"


class Primitive(HeapObject):
    """Native handler: fn(vm, args) -> Value, args[0] being the receiver.

    `arity` counts the receiver; None accepts any number of arguments.
    """

    __slots__ = ("fn", "name", "arity")

    def __init__(self, klass: Optional[Klass], fn, name: str, arity: Optional[int] = None):
        super().__init__(klass)
        self.fn = fn
        self.name = name
        self.arity = arity

    def __repr__(self):
        return f"<primitive {self.name}>"


class Instance(HeapObject):
    """Instance of a user-defined class with named fields."""

    __slots__ = ("fields",)

    def __init__(self, klass: Klass):
        super().__init__(klass)
        self.fields: dict[Symbol, Value] = {}

    def __repr__(self):
        return f"<{self.klass.display_name()} instance>"
