import copy

import pytest

from gramviz.core.errors import ProtoStateError
from gramviz.core.proto import Proto, delegate, proto


class Greeter(Proto):
    greeting = "hello"

    def greet(self, name):
        return f"{self.greeting} {name}"


class LoudGreeter(Greeter):
    def greet(self, name):
        return delegate(Greeter, self).greet(name).upper()


class Shouter(Proto):
    suffix = "!"

    def shout(self, text):
        return text + self.suffix


class Asker(Proto):
    suffix = "?"


def test_instances_are_frozen():
    greeter = Greeter(greeting="hi")
    assert greeter.greet("ann") == "hi ann"
    with pytest.raises(ProtoStateError):
        greeter.greeting = "hey"
    with pytest.raises(AttributeError):
        del greeter.greeting
    assert Greeter().greeting == "hello"


def test_mutable_members_are_frozen():
    class Holder(Proto):
        items = [1, 2]
        options = {"a": 1}

    holder = Holder(extra={"b": [1]})
    assert holder.items == (1, 2)
    assert holder.extra["b"] == (1,)
    with pytest.raises(TypeError):
        holder.options["a"] = 2


def test_function_override_becomes_method():
    greeter = Greeter(greet=lambda self, name: f"yo {name}, {self.greeting}")
    assert greeter.greet("bob") == "yo bob, hello"


def test_staticmethod_override_stays_unbound():
    greeter = Greeter(double=staticmethod(lambda value: value * 2))
    assert greeter.double(3) == 6


def test_delegate_calls_parent_implementation():
    assert LoudGreeter().greet("x") == "HELLO X"
    assert LoudGreeter(greeting="hey").greet("x") == "HEY X"


def test_delegate_borrows_from_unrelated_class():
    assert delegate(Shouter, Asker()).shout("really") == "really?"


def test_proto_creates_anonymous_variant():
    quiet = proto("Quiet", Greeter, greeting="psst")
    assert isinstance(quiet, Greeter)
    assert type(quiet).__name__ == "Quiet"
    assert quiet.greet("x") == "psst x"


def test_derive_keeps_instance_overrides():
    base = Greeter(greeting="hi")
    derived = base.derive(greet=lambda self, name: f"{self.greeting}!{name}")
    assert derived.greet("x") == "hi!x"
    assert base.greet("x") == "hi x"
    assert isinstance(derived, Greeter)


def test_copies_are_the_same_instance():
    greeter = Greeter()
    assert copy.copy(greeter) is greeter
    assert copy.deepcopy({"g": greeter})["g"] is greeter


def test_members_lists_fields_and_methods():
    members = Greeter(extra=1).members()
    assert members[0] == "extra"
    assert {"greet", "greeting"} <= set(members)
