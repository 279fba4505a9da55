from __future__ import annotations

import functools
import inspect
import logging
import types
import typing
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol, Union, get_args, get_origin

from ._errors import ConstructionError, TypeMismatchError
from ._reflect import get_init_type_hints, get_type_hints_for, is_protocol, validate_protocol_instance


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger(__name__)

EMPTY: Any = inspect.Parameter.empty

# Builtin types that get a zero value (``origin()``) when nothing else applies
SCALAR_TYPES = frozenset({str, int, float, bool, complex, bytes, list, dict, tuple, set, frozenset})
COLLECTION_TYPES = frozenset({list, dict, tuple, set, frozenset})

_UNION_TYPES = (Union, types.UnionType)


class Lookup(Protocol):
    """Anything able to answer has/get for a class, usually a Container."""

    def has(self, token: Any) -> bool: ...

    def get(self, token: Any) -> Any: ...


@dataclass(frozen=True)
class Param:
    """A formal parameter, reduced to what resolution needs."""

    name: str
    kind: inspect._ParameterKind = inspect.Parameter.POSITIONAL_OR_KEYWORD
    types: tuple[Any, ...] = ()
    nullable: bool = False
    default: Any = EMPTY

    @property
    def has_default(self) -> bool:
        return self.default is not EMPTY

    @property
    def is_variadic(self) -> bool:
        return self.kind is inspect.Parameter.VAR_POSITIONAL

    @property
    def is_var_keyword(self) -> bool:
        return self.kind is inspect.Parameter.VAR_KEYWORD


def origin_of(tp: Any) -> Any:
    return get_origin(tp) or tp


def is_class_type(tp: Any) -> bool:
    origin = origin_of(tp)
    return inspect.isclass(origin) and origin.__module__ != "builtins"


def is_scalar_type(tp: Any) -> bool:
    return origin_of(tp) in SCALAR_TYPES


def is_collection_type(tp: Any) -> bool:
    return origin_of(tp) in COLLECTION_TYPES


def zero_value(tp: Any) -> Any:
    return origin_of(tp)()


def split_annotation(annotation: Any) -> tuple[tuple[Any, ...], bool]:
    """Split an annotation into its declared types and whether it accepts None."""
    if annotation is EMPTY or annotation is Any:
        return (), False
    if annotation is None or annotation is type(None):
        return (), True

    origin = get_origin(annotation)
    if origin is typing.Annotated:
        return split_annotation(get_args(annotation)[0])
    if origin in _UNION_TYPES:
        declared: list[Any] = []
        nullable = False
        for arg in get_args(annotation):
            arg_types, arg_nullable = split_annotation(arg)
            declared.extend(arg_types)
            nullable = nullable or arg_nullable
        return tuple(declared), nullable

    return (annotation,), False


def params_of(target: Callable[..., Any] | type) -> list[Param]:
    """Describe the parameters of a callable, or of a class constructor."""
    try:
        sig = inspect.signature(target)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures are called without arguments
        return []

    if inspect.isclass(target):
        hints = get_init_type_hints(target)
    else:
        if inspect.isfunction(target) or inspect.ismethod(target):
            hints_source: Any = target
        elif isinstance(target, functools.partial):
            hints_source = target.func
        else:
            hints_source = type(target).__call__
        hints = get_type_hints_for(hints_source, getattr(target, "__qualname__", repr(target)))

    params = []
    for name, p in sig.parameters.items():
        annotation = hints.get(name, p.annotation)
        if isinstance(annotation, str):
            # Unresolved forward reference
            annotation = EMPTY
        declared, nullable = split_annotation(annotation)
        if p.default is None:
            nullable = True
        params.append(Param(name=name, kind=p.kind, types=declared, nullable=nullable, default=p.default))
    return params


def value_matches(value: Any, param: Param) -> bool:
    """Check a value against the declared types of a parameter."""
    if value is None:
        return param.nullable or not param.types
    if not param.types:
        return True
    return any(_matches_type(value, tp) for tp in param.types)


def _matches_type(value: Any, tp: Any) -> bool:  # noqa: PLR0911
    origin = origin_of(tp)
    if origin is Literal:
        return value in get_args(tp)
    if not inspect.isclass(origin):
        # TypeVar, NewType, forward references: nothing to check at runtime
        return True
    if origin in (float, complex) and isinstance(value, int) and not isinstance(value, bool):
        return True
    if is_protocol(origin):
        # isinstance() only checks member presence, and only for runtime checkable protocols
        try:
            validate_protocol_instance(origin, value)
        except TypeError:
            return False
        return True
    try:
        return isinstance(value, origin)
    except TypeError:
        return True


def resolve_arguments(
    params: Sequence[Param],
    supplied: Sequence[Any] | Mapping[str, Any] = (),
    lookup: Lookup | None = None,
    *,
    subject: str = "callable",
) -> tuple[list[Any], dict[str, Any]]:
    """Map formal parameters and supplied arguments to call arguments.

    Supplied arguments are either positional (a sequence) or named (a mapping).
    Per parameter, in declaration order:

    1. ``*args`` takes every remaining positional argument, ``**kwargs`` every
       named argument that matched no parameter.
    2. A supplied value is used as-is, after checking it against the declared types.
    3. A class type the lookup can provide is fetched from it.
    4. Otherwise the code default, then None when nullable, then the zero value
       of a builtin type.

    Positional arguments are consumed in order. When the callable takes
    ``*args``, they are extra arguments: they only fill required parameters the
    lookup cannot provide, and everything left goes to ``*args``.

    Returns ``(args, kwargs)``; raises ConstructionError when a parameter
    cannot be resolved and TypeMismatchError on a badly typed supplied value.
    """
    positional = not isinstance(supplied, Mapping)
    pending = list(supplied) if positional else []
    variadic = positional and any(p.is_variadic for p in params)
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    matched: set[str] = set()

    for param in params:
        if param.is_variadic:
            for value in pending:
                _check(value, param, subject)
            args.extend(pending)
            pending = []
            continue
        if param.is_var_keyword:
            continue

        if positional:
            present = (
                bool(pending)
                and param.kind is not inspect.Parameter.KEYWORD_ONLY
                and (not variadic or _takes_extra(param, lookup))
            )
            value = pending.pop(0) if present else EMPTY
        else:
            present = param.name in supplied
            value = supplied[param.name] if present else EMPTY  # type: ignore[call-overload]

        if present:
            matched.add(param.name)
            _check(value, param, subject)
        else:
            value = _fallback(param, lookup, subject)

        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            kwargs[param.name] = value
        else:
            args.append(value)

    if not positional and any(p.is_var_keyword for p in params):
        kwargs.update({k: v for k, v in supplied.items() if k not in matched})  # type: ignore[union-attr]

    return args, kwargs


def _check(value: Any, param: Param, subject: str) -> None:
    if value_matches(value, param):
        return
    expected = " | ".join(getattr(tp, "__name__", repr(tp)) for tp in param.types)
    msg = f"Argument '{param.name}' of {subject} expects {expected}, got {type(value).__name__}"
    raise TypeMismatchError(msg)


def _takes_extra(param: Param, lookup: Lookup | None) -> bool:
    if param.has_default:
        return False
    if lookup is None:
        return True
    return not any(is_class_type(tp) and lookup.has(origin_of(tp)) for tp in param.types)


def _fallback(param: Param, lookup: Lookup | None, subject: str) -> Any:
    zero = EMPTY
    for tp in param.types:
        if is_class_type(tp):
            cls = origin_of(tp)
            if lookup is not None and lookup.has(cls):
                return lookup.get(cls)
        elif zero is EMPTY and not param.nullable and is_scalar_type(tp):
            zero = zero_value(tp)

    if param.has_default:
        return param.default
    if param.nullable:
        return None
    if zero is not EMPTY:
        logger.debug("Using zero value %r for parameter '%s' of %s", zero, param.name, subject)
        return zero

    msg = f"Unable to resolve parameter '{param.name}' of {subject}"
    raise ConstructionError(msg)
