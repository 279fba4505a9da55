import inspect
from typing import Annotated, Literal, Optional, Protocol, Union

import pytest

from wirebind import ConstructionError, Param, TypeMismatchError, params_of, resolve_arguments


class Thing: ...


class Named(Protocol):
    name: str


class Person:
    def __init__(self, name: str = "Ada"):
        self.name = name


class FakeLookup:
    def __init__(self, services):
        self.services = services

    def has(self, token):
        return token in self.services

    def get(self, token):
        return self.services[token]


def greet(name: str, punctuation: str = "!") -> str:
    return name + punctuation


def test_params_of_describes_parameters():
    name, punctuation = params_of(greet)

    assert name == Param(name="name", types=(str,))
    assert punctuation.default == "!"
    assert punctuation.has_default
    assert not name.has_default


def test_params_of_splits_optional_and_union():
    def fn(a: Optional[Thing], b: Union[str, int], c: Annotated[int, "meta"], d=None): ...

    a, b, c, d = params_of(fn)
    assert a.types == (Thing,)
    assert a.nullable
    assert b.types == (str, int)
    assert not b.nullable
    assert c.types == (int,)
    assert d.types == ()
    assert d.nullable


def test_params_of_class_uses_init():
    class Service:
        def __init__(self, thing: Thing, *extra: str, **options):
            pass

    thing, extra, options = params_of(Service)
    assert thing.types == (Thing,)
    assert extra.is_variadic
    assert extra.types == (str,)
    assert options.is_var_keyword


def test_named_arguments():
    assert resolve_arguments(params_of(greet), {"name": "Ada"}) == (["Ada", "!"], {})


def test_positional_arguments():
    assert resolve_arguments(params_of(greet), ["Ada", "?"]) == (["Ada", "?"], {})


def test_explicit_none_is_used():
    def fn(a: str, b: Optional[str], c: Optional[str]): ...

    assert resolve_arguments(params_of(fn), ["test", None, "other"]) == (["test", None, "other"], {})


def test_wrong_type_raises():
    with pytest.raises(TypeMismatchError):
        resolve_arguments(params_of(greet), {"name": True})


def test_none_for_non_nullable_raises():
    with pytest.raises(TypeMismatchError):
        resolve_arguments(params_of(greet), {"name": None})


def test_type_mismatch_is_a_type_error():
    with pytest.raises(TypeError):
        resolve_arguments(params_of(greet), {"name": 1})


def test_int_is_accepted_for_float():
    def fn(x: float): ...

    assert resolve_arguments(params_of(fn), {"x": 1}) == ([1], {})


def test_union_accepts_any_member():
    def fn(a: Union[str, bool]): ...

    assert resolve_arguments(params_of(fn), [True]) == ([True], {})
    assert resolve_arguments(params_of(fn), ["test"]) == (["test"], {})


def test_literal_checks_membership():
    def fn(mode: Literal["r", "w"]): ...

    assert resolve_arguments(params_of(fn), ["r"]) == (["r"], {})
    with pytest.raises(TypeMismatchError):
        resolve_arguments(params_of(fn), ["x"])


def test_zero_values_for_builtins():
    def fn(s: str, i: int, f: float, b: bool, items: list, mapping: dict): ...

    assert resolve_arguments(params_of(fn)) == (["", 0, 0.0, False, [], {}], {})


def test_zero_values_are_fresh():
    def fn(items: list): ...

    args1, _ = resolve_arguments(params_of(fn))
    args2, _ = resolve_arguments(params_of(fn))
    assert args1[0] is not args2[0]


def test_default_is_preferred_over_zero_value():
    def fn(port: int = 8080): ...

    assert resolve_arguments(params_of(fn)) == ([8080], {})


def test_nullable_is_preferred_over_zero_value():
    def fn(label: Optional[str]): ...

    assert resolve_arguments(params_of(fn)) == ([None], {})


def test_first_builtin_type_gives_the_zero_value():
    def fn(value: Union[int, str]): ...

    assert resolve_arguments(params_of(fn)) == ([0], {})


def test_unresolved_class_parameter_raises():
    def fn(thing: Thing): ...

    with pytest.raises(ConstructionError) as ctx:
        resolve_arguments(params_of(fn), subject="fn")
    assert "'thing' of fn" in str(ctx.value)


def test_lookup_provides_class_parameters():
    thing = Thing()

    def fn(thing: Thing): ...

    assert resolve_arguments(params_of(fn), lookup=FakeLookup({Thing: thing})) == ([thing], {})


def test_lookup_is_preferred_over_default():
    thing = Thing()

    def fn(thing: Optional[Thing] = None): ...

    assert resolve_arguments(params_of(fn), lookup=FakeLookup({Thing: thing})) == ([thing], {})


def test_lookup_reporting_missing_type_falls_back_to_default():
    def fn(thing: Optional[Thing] = None): ...

    assert resolve_arguments(params_of(fn), lookup=FakeLookup({})) == ([None], {})


def test_variadic_takes_remaining_positional_arguments():
    def fn(first: int, *rest: int): ...

    assert resolve_arguments(params_of(fn), [1, 2, 3]) == ([1, 2, 3], {})


def test_variadic_values_are_type_checked():
    def fn(*rest: int): ...

    with pytest.raises(TypeMismatchError):
        resolve_arguments(params_of(fn), [1, "x"])


def test_keyword_only_after_variadic():
    def fn(*items: str, sep: str = ","): ...

    assert resolve_arguments(params_of(fn), ["a", "b"]) == (["a", "b"], {"sep": ","})


def test_extra_named_arguments_go_to_var_keyword():
    def fn(a: int, **options): ...

    assert resolve_arguments(params_of(fn), {"a": 1, "color": "red"}) == ([1], {"color": "red"})


def test_hand_built_params():
    params = [
        Param(name="x", types=(int,), default=5),
        Param(name="y", kind=inspect.Parameter.KEYWORD_ONLY, types=(str,), nullable=True),
    ]

    assert resolve_arguments(params, {}) == ([5], {"y": None})


def test_protocol_data_member_set_in_init_is_accepted():
    def greet(who: Named): ...

    person = Person()
    assert resolve_arguments(params_of(greet), [person]) == ([person], {})


def test_protocol_missing_data_member_is_rejected():
    def greet(who: Named): ...

    with pytest.raises(TypeMismatchError):
        resolve_arguments(params_of(greet), [Thing()])
