from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._errors import ConstructionError, NotFoundError, TypeMismatchError
from ._params import Param, params_of, resolve_arguments, value_matches
from ._reflect import as_type, is_interface, type_name


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._container import Container

    T = TypeVar("T")


logger = logging.getLogger(__name__)


class Injector:
    """Build objects and call functions, filling their parameters.

    Arguments are taken from what the caller supplies first, then from the
    container (when there is one) for class-typed parameters, then from
    defaults, None for optional parameters, or the zero value of builtin types.
    Nothing built by the injector itself is cached.
    """

    def __init__(self, container: Container | None = None) -> None:
        self._container = container

    @property
    def container(self) -> Container | None:
        return self._container

    def has(self, token: object) -> bool:
        if token is Injector:
            return True
        return self._container is not None and self._container.has(token)

    def get(self, token: Any) -> Any:
        if token is Injector:
            return self
        if self._container is None:
            msg = f"`{type_name(token)}` is not set, the injector has no container"
            raise NotFoundError(msg)
        return self._container.get(token)

    def invoke(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``fn``, resolving every parameter not supplied.

        Arguments are either all positional or all named:
          injector.invoke(send_mail, "to@example.com")
          injector.invoke(send_mail, recipient="to@example.com")
        """
        if args and kwargs:
            msg = "Supply arguments either by position or by name, not both"
            raise ConstructionError(msg)
        return self.invoke_with(fn, kwargs or args)

    def invoke_with(self, fn: Callable[..., T], arguments: Sequence[Any] | Mapping[str, Any] = ()) -> T:
        """Like `invoke`, with the arguments given as a list or a mapping."""
        subject = getattr(fn, "__qualname__", repr(fn))
        call_args, call_kwargs = resolve_arguments(params_of(fn), arguments, self, subject=subject)
        return fn(*call_args, **call_kwargs)

    @overload
    def make(self, cls: type[T], *args: Any, **kwargs: Any) -> T: ...

    @overload
    def make(self, cls: str, *args: Any, **kwargs: Any) -> Any: ...

    def make(self, cls: type[T] | str, *args: Any, **kwargs: Any) -> Any:
        """Create a new instance of ``cls``; it is not cached anywhere.

        Interfaces are resolved by a clone of the container so the caller's
        cache is left untouched.
        """
        target = as_type(cls)
        if target is None:
            msg = f"Class `{type_name(cls)}` does not exist"
            raise ConstructionError(msg)

        if is_interface(target):
            if self._container is None:
                msg = f"Cannot instantiate `{type_name(target)}` without a container"
                raise ConstructionError(msg)
            if args or kwargs:
                msg = f"Cannot pass arguments to `{type_name(target)}`, it is resolved by the container"
                raise ConstructionError(msg)
            logger.debug("Making %s through a cloned container", type_name(target))
            instance = self._container.clone().get(target)
        else:
            instance = self.invoke(target, *args, **kwargs)

        if not value_matches(instance, Param(name="instance", types=(target,))):
            msg = f"Expected an instance of {type_name(target)}, got {type(instance).__name__}"
            raise TypeMismatchError(msg)
        return instance
