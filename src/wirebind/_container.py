from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._definitions import AUTO, Definitions
from ._errors import CircularReferenceError, ConstructionError, NotFoundError, TypeMismatchError
from ._params import (
    EMPTY,
    Param,
    is_class_type,
    is_collection_type,
    origin_of,
    params_of,
    resolve_arguments,
    value_matches,
    zero_value,
)
from ._reflect import as_type, is_factory, is_interface, is_loadable, load_type, type_name


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    T = TypeVar("T")

    Token = type[T] | str


class Container:
    """Resolve tokens to cached, fully wired instances.

    - bindings, parameters, resolvers and callbacks come from `Definitions`
    - concrete classes without a binding are auto-wired from their type hints
    - every resolved instance is cached for the lifetime of the container
    - `clone()` gives an independent object graph over the same definitions.
    """

    def __init__(self, definitions: Definitions | Mapping[Any, Any] | None = None) -> None:
        if not isinstance(definitions, Definitions):
            definitions = Definitions(definitions)
        self._definitions = definitions
        self._instances: dict[Any, Any] = {}
        self._building: dict[Any, bool] = {}
        # id() -> object whose class callbacks already ran; holding the object keeps its id() unique
        self._configured: dict[int, Any] = {}
        self._lock = threading.RLock()

    @property
    def definitions(self) -> Definitions:
        return self._definitions

    def has(self, token: object) -> bool:
        """Whether `get(token)` can be attempted without raising NotFoundError.

        Any concrete class (or dotted path to one) can be built without a binding.
        """
        if self._definitions.has(token):
            return True
        return is_loadable(token)

    @overload
    def get(self, token: type[T]) -> T: ...

    @overload
    def get(self, token: str) -> Any: ...

    def get(self, token: Token[T]) -> Any:
        """Return the cached instance for a token, building it on first access."""
        if not self.has(token):
            msg = f"`{type_name(token)}` is not set"
            raise NotFoundError(msg)

        if token is Container or token is type(self):
            return self

        from ._injector import Injector  # noqa: PLC0415

        if token is Injector:
            return Injector(self)

        with self._lock:
            if token in self._instances:
                return self._instances[token]

            instance = self._build(token)

            # Cached before callbacks so a callback asking for the same token gets this instance
            self._instances[token] = instance
            try:
                self._configure(instance, token)
            except BaseException:
                del self._instances[token]
                raise

            logger.debug("Cached %s as %s", type_name(token), type(instance).__name__)
            return instance

    def clone(self) -> Container:
        """Same definitions, empty cache."""
        return type(self)(self._definitions)

    def __copy__(self) -> Container:
        return self.clone()

    def _build(self, token: Any, aliases: tuple[Any, ...] = ()) -> Any:
        """Produce the object for a token; ``aliases`` are the ids that led to it, outermost first."""
        definition = self._definitions.get(token)

        if _is_instance(definition):
            # A pre-built instance, nothing to construct
            return definition

        if token in self._building:
            chain = (*self._building, token)
            msg = f"Circular reference to `{type_name(token)}` in `{', '.join(type_name(t) for t in self._building)}`"
            raise CircularReferenceError(msg, chain)

        self._building[token] = True
        try:
            if is_factory(definition):
                return self._call_factory(token, definition)
            if inspect.isclass(definition) or isinstance(definition, str):
                if definition != token:
                    logger.debug("Following %s to %s", type_name(token), type_name(definition))
                    return self._build(definition, (*aliases, token))
            return self._construct(token, aliases)
        finally:
            del self._building[token]

    def _call_factory(self, token: Any, factory: Any) -> Any:
        from ._injector import Injector  # noqa: PLC0415

        logger.debug("Calling factory for %s", type_name(token))
        instance = Injector(self).invoke(factory)
        if instance is None:
            msg = f"Factory for `{type_name(token)}` returned None"
            raise ConstructionError(msg)
        if inspect.isclass(token) and not value_matches(instance, Param(name="factory", types=(token,))):
            msg = f"Factory for `{type_name(token)}` returned an instance of {type(instance).__name__}"
            raise TypeMismatchError(msg)
        return instance

    def _construct(self, token: Any, aliases: tuple[Any, ...]) -> Any:
        cls = as_type(token)
        if cls is None:
            msg = f"Class `{type_name(token)}` does not exist"
            raise ConstructionError(msg)
        if is_interface(cls):
            msg = f"Cannot instantiate `{type_name(cls)}`, bind an implementation to it"
            raise ConstructionError(msg)

        logger.debug("Building %s", type_name(token))
        params = params_of(cls)
        overrides = self._definitions.all_parameters_for(cls, token, *reversed(aliases))

        supplied: dict[str, Any] = {}
        for param in params:
            if param.is_variadic or param.is_var_keyword:
                continue

            if param.name in overrides:
                supplied[param.name] = overrides[param.name]
                continue

            value = self._resolve_service(param, cls)
            if value is not EMPTY:
                supplied[param.name] = value
                continue

            if not param.has_default:
                collection = next((tp for tp in param.types if is_collection_type(tp)), None)
                if collection is not None:
                    supplied[param.name] = zero_value(collection)

        # Extra overrides end up in **kwargs when the constructor takes them
        for name, value in overrides.items():
            supplied.setdefault(name, value)

        try:
            args, kwargs = resolve_arguments(params, supplied, subject=f"`{type_name(token)}`")
        except TypeMismatchError:
            raise
        except ConstructionError as e:
            msg = f"Unable to create object `{type_name(token)}`: {e}"
            raise ConstructionError(msg) from e
        return cls(*args, **kwargs)

    def _resolve_service(self, param: Param, consumer: type) -> Any:
        """Find a service for a class-typed parameter, EMPTY when there is none."""
        for tp in param.types:
            if not is_class_type(tp):
                continue
            cls = origin_of(tp)

            service = self._resolve_name(param.name, cls, consumer)
            if service is not None and self._definitions.has(service):
                return self._checked(param, service, consumer)

            if self._definitions.has(cls):
                return self.get(cls)

            if self._definitions.has(param.name):
                return self._checked(param, param.name, consumer)

            if self.has(cls):
                return self.get(cls)
        return EMPTY

    def _checked(self, param: Param, service: Any, consumer: type) -> Any:
        value = self.get(service)
        if not value_matches(value, param):
            msg = (
                f"Service `{type_name(service)}` is a {type(value).__name__}, which does not match "
                f"parameter '{param.name}' of {type_name(consumer)}"
            )
            raise TypeMismatchError(msg)
        return value

    def _resolve_name(self, name: str, cls: type, consumer: type) -> Any:
        """Service id picked by a resolver for this parameter, if any."""
        service = None
        for key, value in self._definitions.resolvers_for(cls).items():
            if key == "*" or key == name or self._is_consumer(key, consumer):
                service = value(name, consumer) if callable(value) and not inspect.isclass(value) else value
        return service

    @staticmethod
    def _is_consumer(key: Any, consumer: type) -> bool:
        if isinstance(key, str):
            if "." not in key:
                return False
            key = load_type(key)
        return inspect.isclass(key) and issubclass(consumer, key)

    def _configure(self, instance: Any, token: Any) -> None:
        """Run callbacks for a freshly resolved instance.

        Interface callbacks run before the class callbacks; callbacks of any other
        token (a named service, a parent class) run after them. Class callbacks run
        once per object, even when one instance is bound to several ids.
        """
        callbacks = list(self._definitions.callbacks_for(token).values())
        cls = type(instance)
        first_seen = id(instance) not in self._configured
        if cls is not token:
            own = list(self._definitions.callbacks_for(cls).values()) if first_seen else []
            callbacks = callbacks + own if is_interface(as_type(token)) else own + callbacks
        elif not first_seen:
            callbacks = []

        self._configured[id(instance)] = instance
        try:
            for fn in callbacks:
                logger.debug("Running callback %s for %s", getattr(fn, "__qualname__", fn), type_name(token))
                fn(instance, self)
        except BaseException:
            if first_seen:
                del self._configured[id(instance)]
            raise


def _is_instance(definition: Any) -> bool:
    if definition is None or definition is AUTO:
        return False
    return not (inspect.isclass(definition) or isinstance(definition, str) or is_factory(definition))
