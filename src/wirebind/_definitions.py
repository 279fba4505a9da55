from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ._errors import DefinitionError
from ._reflect import (
    as_type,
    interfaces_of,
    is_factory,
    is_loadable,
    load_type,
    registrable_bases,
    type_name,
    validate_impl,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from ._container import Container

    Token = type | str
    Callback = Callable[[Any, Container], object]


logger = logging.getLogger(__name__)


class _Auto:
    def __repr__(self) -> str:
        return "AUTO"


# Marker for "build the type named by the id"; only set() can store it
AUTO: Any = _Auto()


class Definitions:
    """Declarative bindings consumed by a Container.

    - bindings: id -> instance, factory, class/dotted-path alias, or AUTO
    - parameter overrides: (id, name) -> value
    - resolvers: (type, key) -> service id or fn(name, consumer) -> service id
    - callbacks run once after an instance is built

    Every builder method returns the definitions so calls can be chained and
    closed with ``lock()``. A locked registry rejects further changes.
    """

    def __init__(self, definitions: Mapping[Token, Any] | Definitions | None = None) -> None:
        self._values: dict[Any, Any] = {}
        self._callbacks: dict[Any, dict[str, Callback]] = {}
        self._parameters: dict[Any, dict[str, Any]] = {}
        self._resolvers: dict[Any, dict[Any, Any]] = {}
        self._locked = False

        if isinstance(definitions, Definitions):
            self.merge(definitions)
        elif definitions:
            for token, value in definitions.items():
                self.set(token, value)

    def __contains__(self, token: object) -> bool:
        return self.has(token)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"Definitions({', '.join(type_name(t) for t in self._values)})"

    def has(self, token: object) -> bool:
        try:
            return token in self._values
        except TypeError:
            # unhashable
            return False

    def miss(self, token: object) -> bool:
        return not self.has(token)

    def get(self, token: object) -> Any:
        """Raw binding for a token, None when absent."""
        if not self.has(token):
            return None
        return self._values[token]

    def set(self, token: Token, value: Any = AUTO) -> Definitions:
        """Bind a token.

        Example:
          definitions.set(Clock, SystemClock)             # alias to a class
          definitions.set("db", lambda: connect(":memory:"))  # lazy factory
          definitions.set(Settings, Settings(debug=True))  # instance
          definitions.set(Repository)                      # auto-wire Repository
          definitions.set("backup", "db")                  # alias to another id

        A string value is an alias when it names an id that is already set,
        otherwise it must be a dotted path to a class. Set the target id before
        its aliases.
        """
        self._check_unlocked()
        self._check_token(token)

        if value is None:
            msg = f"Cannot bind {type_name(token)} to None"
            raise DefinitionError(msg)

        if value is AUTO:
            if not is_loadable(token):
                msg = f"Cannot auto-wire {type_name(token)}: not a concrete class"
                raise DefinitionError(msg)
        elif isinstance(value, str):
            if self.has(value) and value != token:
                # Alias to another service
                self._values[token] = value
                return self
            impl = load_type(value)
            if impl is None:
                msg = f"Cannot bind {type_name(token)} to `{value}`: no such class"
                raise DefinitionError(msg)
            self._validate(token, impl)
        elif inspect.isclass(value):
            self._validate(token, value)
        elif not is_factory(value):
            # Factories are checked once they produced something
            self._validate(token, type(value))

        self._values[token] = value
        return self

    def add(self, instance: object) -> Definitions:
        """Register an instance under its class, parent classes and interfaces.

        Tokens that are already bound keep their binding.
        """
        self._check_unlocked()
        if instance is None or inspect.isclass(instance) or isinstance(instance, str):
            msg = f"add() expects an instance, got {instance!r}"
            raise DefinitionError(msg)

        for base in registrable_bases(type(instance)):
            if self.miss(base):
                self._values[base] = instance
        return self

    def bind(self, cls: type | str, interface: type | str | None = None, **parameters: Any) -> Definitions:
        """Bind an interface to a class.

        The interface may be omitted when ``cls`` implements exactly one.
        Keyword arguments become parameter overrides for ``cls``.
        """
        self._check_unlocked()
        impl = as_type(cls)
        if impl is None or not is_loadable(impl):
            msg = f"Cannot bind `{type_name(cls)}`: not a concrete class"
            raise DefinitionError(msg)

        if interface is None:
            candidates = interfaces_of(impl)
            if len(candidates) != 1:
                names = ", ".join(base.__name__ for base in candidates) or "none"
                msg = f"Cannot infer the interface of {impl.__name__}, it implements: {names}"
                raise DefinitionError(msg)
            target: type | None = candidates[0]
        else:
            target = as_type(interface)
            if target is None:
                msg = f"Cannot bind to `{type_name(interface)}`: no such class"
                raise DefinitionError(msg)

        if parameters:
            self.parameters(impl, **parameters)
        return self.set(target, impl)

    def resolve(self, cls: type | str, key: type | str, value: Any) -> Definitions:
        """Pick which service fills parameters of type ``cls``.

        ``key`` is ``"*"`` (every parameter of that type), a parameter name, or a
        consumer class (applies when the class being built is a subclass of it).
        ``value`` is a service id, or ``fn(name, consumer) -> service id``.
        """
        self._check_unlocked()
        self._resolvers.setdefault(as_type(cls) or cls, {})[key] = value
        return self

    def resolvers_for(self, cls: type | str) -> dict[Any, Any]:
        return dict(self._resolvers.get(as_type(cls) or cls, {}))

    def parameter(self, token: Token, name: str, value: Any) -> Definitions:
        self._check_unlocked()
        self._parameters.setdefault(token, {})[name] = value
        return self

    def parameters(self, token: Token, **values: Any) -> Definitions:
        """Provide several parameters at once, eg: parameters(Mailer, host="localhost", port=25)."""
        for name, value in values.items():
            self.parameter(token, name, value)
        return self

    def parameters_for(self, token: Token) -> dict[str, Any]:
        return dict(self._parameters.get(token, {}))

    def all_parameters_for(self, cls: type, *tokens: Token) -> dict[str, Any]:
        """Parameters for a class, overridden by those of the ids it is built for.

        ``tokens`` go from the innermost alias to the id that was requested; later ones win.
        """
        params = self.parameters_for(cls)
        for token in tokens:
            if token is not cls:
                params.update(self.parameters_for(token))
        return params

    def callback(self, token: Token, fn: Callback, name: str | None = None) -> Definitions:
        """Run ``fn(instance, container)`` once the instance for ``token`` is built."""
        self._check_unlocked()
        callbacks = self._callbacks.setdefault(token, {})
        if name is None:
            index = len(callbacks)
            while str(index) in callbacks:
                index += 1
            name = str(index)
        callbacks[name] = fn
        return self

    def callbacks_for(self, token: Token) -> dict[str, Callback]:
        return dict(self._callbacks.get(token, {}))

    def merge(self, definitions: Definitions) -> Definitions:
        """Merge another set of definitions into this one.

        Bindings from ``definitions`` win. Parameters and resolvers are merged per
        key. Unnamed callbacks are appended, named ones replace callbacks of the
        same name.
        """
        self._check_unlocked()
        self._values.update(definitions._values)  # noqa: SLF001
        for token, params in definitions._parameters.items():  # noqa: SLF001
            self._parameters.setdefault(token, {}).update(params)
        for cls, resolvers in definitions._resolvers.items():  # noqa: SLF001
            self._resolvers.setdefault(cls, {}).update(resolvers)
        for token, callbacks in definitions._callbacks.items():  # noqa: SLF001
            for name, fn in callbacks.items():
                self.callback(token, fn, None if name.isdigit() else name)
        return self

    def lock(self) -> Definitions:
        """Refuse further changes (until ``unlock()``)."""
        self._locked = True
        return self

    def unlock(self) -> Definitions:
        self._locked = False
        return self

    def is_locked(self) -> bool:
        return self._locked

    def _check_unlocked(self) -> None:
        if self._locked:
            msg = "Definitions are locked"
            raise DefinitionError(msg)

    def _check_token(self, token: object) -> None:
        if not (inspect.isclass(token) or (isinstance(token, str) and token)):
            msg = f"Tokens must be classes or non-empty strings, got {token!r}"
            raise DefinitionError(msg)

    def _validate(self, token: object, impl: type) -> None:
        if not inspect.isclass(token):
            # Non-type tokens (like strings): cannot validate statically.
            return
        try:
            validate_impl(token, impl)
        except TypeError as e:
            msg = f"Cannot bind {type_name(token)}: {e}"
            raise DefinitionError(msg) from e
        logger.debug("Bound %s to %s", type_name(token), type_name(impl))
