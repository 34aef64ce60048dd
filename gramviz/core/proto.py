"""Prototype object model shared by every extension point.

Components (geoms, stats, positions, coords, facets, scales, guides, layers) are
classes derived from :class:`Proto`. Class attributes hold fields and methods alike;
instances may override fields at construction and are frozen afterwards. Runtime
state never lives on a component: it is carried by the parameter objects threaded
through the pipeline calls.

Named components are declared with ordinary ``class`` statements. Anonymous
variants ("subclassing without renaming") are created with :func:`proto` or
:meth:`Proto.derive`. :func:`delegate` calls another class's implementation of a
member with the current instance, which covers both calling a parent's version of an
overridden method and borrowing a method from an unrelated class.
"""

from __future__ import annotations

import inspect
from types import FunctionType, MappingProxyType, MethodType
from typing import Any, Dict, List, Optional, Type

from .errors import ProtoStateError


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


class Proto:
    """Base class for stateless, inheritable, overridable components.

    Plain functions passed as overrides become methods bound to the instance; wrap a
    function in ``staticmethod`` to store it as an unbound callable (palettes, oob).
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for name, value in list(vars(cls).items()):
            if name.startswith("__"):
                continue
            frozen = _freeze(value)
            if frozen is not value:
                setattr(cls, name, frozen)

    def __init__(self, **overrides: Any) -> None:
        for name, value in overrides.items():
            if isinstance(value, FunctionType):
                value = MethodType(value, self)
            else:
                value = _freeze(value)
            object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ProtoStateError(
            f"cannot set '{name}' on {type(self).__name__}: component instances are shared "
            "between renders and must stay immutable; pass runtime state through params"
        )

    def __delattr__(self, name: str) -> None:
        raise ProtoStateError(f"cannot delete '{name}' from {type(self).__name__}")

    def __copy__(self) -> "Proto":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "Proto":
        return self

    def __repr__(self) -> str:
        chain = ", ".join(klass.__name__ for klass in _proto_chain(type(self)))
        return f"<{type(self).__name__} proto: {chain}>"

    @classmethod
    def parent_class(cls) -> Optional[Type["Proto"]]:
        for base in cls.__mro__[1:]:
            if isinstance(base, type) and issubclass(base, Proto):
                return base
        return None

    def overrides(self) -> Dict[str, Any]:
        """Instance-level overrides given at construction."""
        return {
            name: (value.__func__ if isinstance(value, MethodType) else value)
            for name, value in vars(self).items()
        }

    def derive(self, name: Optional[str] = None, **members: Any) -> "Proto":
        """Return a new instance of an anonymous subclass carrying ``members``."""
        base = type(self)
        functions = {key: value for key, value in members.items() if _is_method_like(value)}
        fields = {key: value for key, value in members.items() if key not in functions}
        klass = type(name or base.__name__, (base,), functions)
        carried = {key: value for key, value in self.overrides().items() if key not in members}
        carried.update(fields)
        return klass(**carried)

    def members(self) -> List[str]:
        seen: Dict[str, None] = {}
        for name in vars(self):
            seen.setdefault(name, None)
        for klass in _proto_chain(type(self)):
            for name in vars(klass):
                if not name.startswith("__"):
                    seen.setdefault(name, None)
        return list(seen)


def _proto_chain(klass: type) -> List[type]:
    return [base for base in klass.__mro__ if isinstance(base, type) and issubclass(base, Proto)]


def _is_method_like(value: Any) -> bool:
    return isinstance(value, (FunctionType, staticmethod, classmethod, property))


def proto(name: Optional[str], parent: Any = None, **members: Any) -> Proto:
    """Create a component class at runtime and return an instance of it.

    ``parent`` may be a Proto class or instance; instance overrides of the parent are
    inherited. Fields and functions are passed alike through ``members``.
    """

    if parent is None:
        parent = Proto
    if isinstance(parent, Proto):
        return parent.derive(name, **members)
    if not (isinstance(parent, type) and issubclass(parent, Proto)):
        raise TypeError(f"parent must be a Proto class or instance, not {type(parent).__name__}")
    klass = type(name or parent.__name__, (parent,), dict(members))
    return klass()


_MISSING = object()


class _Delegate:
    __slots__ = ("_parent", "_obj")

    def __init__(self, parent: Any, obj: Proto) -> None:
        self._parent = parent
        self._obj = obj

    def __getattr__(self, name: str) -> Any:
        parent = self._parent
        if not isinstance(parent, type):
            own = vars(parent).get(name, _MISSING)
            if isinstance(own, MethodType):
                return MethodType(own.__func__, self._obj)
            if own is not _MISSING:
                return own
            parent = type(parent)
        member = inspect.getattr_static(parent, name)
        if isinstance(member, staticmethod):
            return member.__func__
        if isinstance(member, classmethod):
            return MethodType(member.__func__, parent)
        if isinstance(member, FunctionType):
            return MethodType(member, self._obj)
        if isinstance(member, property):
            return member.fget(self._obj)
        return member


def delegate(parent: Any, obj: Proto) -> Any:
    """Call ``parent``'s members with ``obj`` as the instance.

    ``delegate(GeomPath, self).draw_panel(data, panel_params, coord)`` runs GeomPath's
    implementation even when ``type(self)`` overrides it or is unrelated to GeomPath.
    """

    return _Delegate(parent, obj)


def is_proto(value: Any) -> bool:
    return isinstance(value, Proto)
