from __future__ import annotations

from typing import Any


class ContainerError(Exception):
    """Base class for every error raised by the container."""


class NotFoundError(ContainerError, KeyError):
    def __str__(self) -> str:
        # KeyError repr()s its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class ConstructionError(ContainerError, RuntimeError):
    pass


class DefinitionError(ConstructionError, ValueError):
    pass


class TypeMismatchError(ConstructionError, TypeError):
    pass


class CircularReferenceError(ConstructionError):
    """Raised when an id is requested again while it is still being built.

    `chain` holds the ids under construction, in the order they were entered,
    followed by the id that closed the loop.
    """

    def __init__(self, msg: str, chain: tuple[Any, ...] = ()) -> None:
        super().__init__(msg)
        self.chain = chain
