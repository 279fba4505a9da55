from __future__ import annotations

import abc
import functools
import importlib
import inspect
import logging
import typing
from typing import Any, Protocol, cast, get_type_hints


logger = logging.getLogger(__name__)


def type_name(token: object) -> str:
    """Readable name for a token: dotted path for classes, the string itself otherwise."""
    if inspect.isclass(token):
        return f"{token.__module__}.{token.__qualname__}"
    return str(token)


def load_type(name: str) -> type | None:
    """Import a class from a dotted path such as ``package.module.Class``.

    Returns None when the path does not lead to a class.
    """
    if "." not in name:
        return None

    # Try the longest importable module prefix, then walk the remaining attributes
    parts = name.split(".")
    for split in range(len(parts) - 1, 0, -1):
        try:
            obj: Any = importlib.import_module(".".join(parts[:split]))
        except ImportError:
            continue
        except Exception:  # noqa: BLE001
            logger.debug("Importing %s failed while loading %s", ".".join(parts[:split]), name, exc_info=True)
            return None
        try:
            for attr in parts[split:]:
                obj = getattr(obj, attr)
        except AttributeError:
            return None
        return obj if inspect.isclass(obj) else None
    return None


def as_type(token: object) -> type | None:
    if inspect.isclass(token):
        return token
    if isinstance(token, str):
        return load_type(token)
    return None


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: object) -> bool:
        """Detect whether 'tp' is a typing.Protocol subclass (safe)."""
        return inspect.isclass(tp) and issubclass(tp, cast("type", Protocol)) and getattr(tp, "_is_protocol", False)


def is_interface(tp: object) -> bool:
    """Protocols, abstract classes and direct ABC subclasses cannot be auto-wired."""
    if not inspect.isclass(tp):
        return False
    return is_protocol(tp) or inspect.isabstract(tp) or abc.ABC in tp.__bases__


def is_loadable(token: object) -> bool:
    """True for concrete, non-builtin classes (or dotted paths to one)."""
    tp = as_type(token)
    if tp is None:
        return False
    return tp.__module__ != "builtins" and not is_interface(tp)


def is_factory(value: object) -> bool:
    """Functions (Python or builtin), bound methods and partials.

    Other callable objects, such as ``operator.attrgetter(...)``, are bound as instances.
    """
    if inspect.isclass(value):
        return False
    return (
        inspect.isfunction(value)
        or inspect.ismethod(value)
        or inspect.isbuiltin(value)
        or isinstance(value, functools.partial)
    )


def interfaces_of(cls: type) -> list[type]:
    return [base for base in cls.__mro__[1:] if is_interface(base) and base.__module__ not in _SKIPPED_MODULES]


def registrable_bases(cls: type) -> list[type]:
    """The class itself, then every parent class and interface worth binding to."""
    return [base for base in cls.__mro__ if base is cls or base.__module__ not in _SKIPPED_MODULES]


_SKIPPED_MODULES = frozenset({"builtins", "typing", "abc", "typing_extensions"})


def validate_impl(cls: type, impl: type) -> None:
    """Validate that 'impl' implements 'cls'.

    - For normal classes/ABCs: require issubclass(impl, cls).
    - For Protocols: avoid issubclass/isinstance unless runtime-checkable.
      Check nominal via MRO; otherwise perform structural conformance.

    Raise TypeError when 'impl' does not implement 'cls'.
    """
    if not is_protocol(cls):
        if not issubclass(impl, cls):
            msg = f"Implementation {impl.__name__} must be a subclass of {cls.__name__}"
            raise TypeError(msg)
        return

    validate_protocol_impl(cls, impl)


def validate_protocol_impl(proto_cls: type, impl: type) -> None:
    # Try nominal conformance without issubclass
    if proto_cls in getattr(impl, "__mro__", ()):
        return

    # Otherwise, check structural conformance
    _validate_protocol_structural_conformance(proto_cls, impl, impl.__name__)


def validate_protocol_instance(proto_cls: type, value: object) -> None:
    """Like `validate_protocol_impl`, for an object: attributes set in ``__init__`` count."""
    if proto_cls in type(value).__mro__:
        return

    _validate_protocol_structural_conformance(proto_cls, value, type(value).__name__)


def _validate_protocol_structural_conformance(proto_cls: type, impl: Any, impl_name: str) -> None:  # noqa: C901
    """Best-effort structural conformance: presence + basic callable arity + return type checks."""
    missing: list[str] = []
    signature_mismatches: list[str] = []

    try:
        proto_hints = get_type_hints(proto_cls, include_extras=True)
    except (TypeError, NameError):
        proto_hints = {}

    # Attributes required by annotations
    for name in proto_hints:
        if name.startswith("_"):
            continue
        if not hasattr(impl, name):
            missing.append(name)

    for name, proto_attr in proto_cls.__dict__.items():
        if name.startswith("_") or not inspect.isfunction(proto_attr):
            continue

        if not hasattr(impl, name):
            missing.append(name)
            continue

        impl_attr = getattr(impl, name)
        if not callable(impl_attr):
            signature_mismatches.append(f"{name}: not Callable on {impl_name}")
            continue

        try:
            proto_sig = inspect.signature(proto_attr)
            impl_sig = inspect.signature(impl_attr)

            proto_params = [p for p in proto_sig.parameters.values() if p.name != "self"]
            impl_params = [p for p in impl_sig.parameters.values() if p.name != "self"]

            if _positional_arity(impl_params) < _positional_arity(proto_params):
                signature_mismatches.append(
                    f"{name}: impl has fewer required positional params "
                    f"({_positional_arity(impl_params)}) than protocol "
                    f"({_positional_arity(proto_params)})"
                )

            proto_ret = proto_sig.return_annotation
            impl_ret = impl_sig.return_annotation

            if (
                proto_ret is not inspect.Signature.empty
                and impl_ret is not inspect.Signature.empty
                and proto_ret is not Any
                and impl_ret is not Any
            ):
                if not _is_return_type_compatible(impl_ret, proto_ret):
                    signature_mismatches.append(
                        f"{name}: return type {impl_ret!r} is not compatible with "
                        f"protocol return type {proto_ret!r}"
                    )

        except Exception as e:  # noqa: BLE001
            signature_mismatches.append(f"{name}: unable to compare signatures ({e})")

    if missing or signature_mismatches:
        msgs = []
        if missing:
            msgs.append(f"missing members: {', '.join(missing)}")
        if signature_mismatches:
            msgs.append(f"signature mismatches: {', '.join(signature_mismatches)}")

        msg = (
            f"Implementation {impl_name} does not structurally conform to protocol "
            f"{proto_cls.__name__}: {'; '.join(msgs)}"
        )
        raise TypeError(msg)


def _positional_arity(params: list[inspect.Parameter]) -> int:
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _is_return_type_compatible(impl_ret: object, proto_ret: object) -> bool:
    # Exact match
    if impl_ret == proto_ret:
        return True

    # String annotations (from __future__ annotations) compare by name only
    if isinstance(impl_ret, str) or isinstance(proto_ret, str):
        return getattr(impl_ret, "__name__", impl_ret) == getattr(proto_ret, "__name__", proto_ret)

    # Handle class-based covariance
    if isinstance(impl_ret, type) and isinstance(proto_ret, type):
        return issubclass(impl_ret, proto_ret)

    # Everything else (Union, Protocol, TypeVar, etc.) -> conservative failure
    return False


def get_type_hints_for(obj: Any, owner: str) -> dict[str, Any]:
    try:
        hints = get_type_hints(obj, include_extras=True)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s type hints", exc.name, owner)
        hints = {}

    return hints


def get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
    except AttributeError:
        return {}
    return get_type_hints_for(init, f"{cls.__name__} ({cls.__qualname__})")
