"""Inversion-of-control container.

This package turns declarative bindings into a wired object graph, resolving
constructor dependencies from type hints at resolution time.

Exports:
- `Definitions`: Registry of bindings, parameter overrides, resolvers and
  post-construction callbacks. Built once, then locked and shared.
- `Container`: Resolves tokens (classes or string ids) to cached instances,
  auto-wiring concrete classes and detecting circular references. `clone()`
  gives an isolated object graph over the same definitions.
- `Injector`: Calls functions or builds objects with their parameters filled
  from supplied arguments, the container, defaults or zero values.
- `resolve_arguments` / `params_of` / `Param`: The parameter resolution
  algorithm shared by the container and the injector.
"""

from ._container import Container
from ._definitions import AUTO, Definitions
from ._errors import (
    CircularReferenceError,
    ConstructionError,
    ContainerError,
    DefinitionError,
    NotFoundError,
    TypeMismatchError,
)
from ._injector import Injector
from ._params import Param, params_of, resolve_arguments


__all__ = [
    "AUTO",
    "CircularReferenceError",
    "ConstructionError",
    "Container",
    "ContainerError",
    "Definitions",
    "DefinitionError",
    "Injector",
    "NotFoundError",
    "Param",
    "TypeMismatchError",
    "params_of",
    "resolve_arguments",
]
