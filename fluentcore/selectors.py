"""
Chainable selections of types, methods and properties.

A selection is an immutable ordered sequence of descriptors. Every filter returns a new,
narrower selection and never mutates its source, so filters compose left to right and
independent filters commute. Filtering down to nothing yields an empty selection, never
an error.

Examples:
    >>> select_types(myapp.models).that_are_decorated_with(Entity).methods().that_are_virtual()
    >>> select_methods(Service).that_are_non_private().that_return_void().to_list()
"""

# Standard library -----------------------------------------------------------------------------------------------------
import collections.abc as abc
import importlib
import pkgutil
import types

from typing import Any, Callable, Generic, Iterable, Iterator, Self, TypeVar

# Local ----------------------------------------------------------------------------------------------------------------
from .reflection import (
    Marker,
    MemberInfo,
    MethodInfo,
    NoneType,
    PropertyInfo,
    TypeInfo,
    Visibility,
    describe_methods,
    describe_properties,
    describe_type,
)
from .utils import is_under_namespace, type_label

D = TypeVar("D")
M = TypeVar("M", bound=MemberInfo)


# Classes --------------------------------------------------------------------------------------------------------------

class Selection(Generic[D]):
    """
    Ordered, duplicate-free and immutable sequence of descriptors.

    Duplicates are dropped on construction keeping the first occurrence.
    """

    def __init__(self, items: Iterable[D] = ()):
        unique: dict[Any, D] = {}
        for item in items:
            unique.setdefault(self._key(item), item)
        self._items: tuple[D, ...] = tuple(unique.values())

    def __contains__(self, item: Any) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[D]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        names = ", ".join(self._name(item) for item in self._items)
        return f"{type(self).__name__}([{names}])"

    # Methods ------------------------------------------

    def that_satisfy(self, predicate: Callable[[D], bool]) -> Self:
        """Keep the descriptors accepted by predicate."""
        if not callable(predicate):
            raise TypeError(f"predicate must be callable, got {type_label(predicate)}")
        return self._narrow(predicate)

    def to_list(self) -> list[D]:
        """Materialize the selection."""
        return list(self._items)

    # Private Methods ----------------------------------

    def _narrow(self, predicate: Callable[[D], bool]) -> Self:
        return type(self)(item for item in self._items if predicate(item))

    @staticmethod
    def _key(item: D) -> Any:
        return id(item)

    @staticmethod
    def _name(item: D) -> str:
        return repr(item)


class MemberSelection(Selection[M]):
    """Selection of member descriptors with the filters shared by methods and properties."""

    def that_are_public_or_internal(self) -> Self:
        return self._narrow(lambda m: m.visibility in (Visibility.PUBLIC, Visibility.INTERNAL))

    def that_are_non_private(self) -> Self:
        """Keep public, internal and protected members."""
        return self._narrow(lambda m: m.visibility != Visibility.PRIVATE)

    def that_are_decorated_with(
        self, marker_type: type[Marker], predicate: Callable[[Marker], bool] | None = None
    ) -> Self:
        """Keep members carrying a marker of exactly marker_type, optionally matching predicate."""
        _check_marker_type(marker_type)
        return self._narrow(lambda m: m.is_decorated_with(marker_type, predicate))

    def that_are_not_decorated_with(self, marker_type: type[Marker]) -> Self:
        _check_marker_type(marker_type)
        return self._narrow(lambda m: not m.is_decorated_with(marker_type))

    def that_are_decorated_with_or_inherit(
        self, marker_type: type[Marker], predicate: Callable[[Marker], bool] | None = None
    ) -> Self:
        """Like that_are_decorated_with(), also considering inheritable markers of overridden members."""
        _check_marker_type(marker_type)
        return self._narrow(lambda m: m.is_decorated_with(marker_type, predicate, inherit=True))

    def that_are_not_decorated_with_or_inherit(self, marker_type: type[Marker]) -> Self:
        _check_marker_type(marker_type)
        return self._narrow(lambda m: not m.is_decorated_with(marker_type, inherit=True))

    def that_return(self, return_type: Any) -> Self:
        """Keep members whose return annotation equals return_type exactly."""
        expected = _normalize_return_type(return_type)
        return self._narrow(lambda m: m.return_type == expected)

    def that_do_not_return(self, return_type: Any) -> Self:
        expected = _normalize_return_type(return_type)
        return self._narrow(lambda m: m.return_type != expected)

    def that_are_virtual(self) -> Self:
        return self._narrow(lambda m: m.is_virtual)

    def that_are_not_virtual(self) -> Self:
        return self._narrow(lambda m: not m.is_virtual)

    @staticmethod
    def _key(item: MemberInfo) -> Any:
        return item.declaring_type, item.name

    @staticmethod
    def _name(item: MemberInfo) -> str:
        return item.qualified_name


class MethodSelection(MemberSelection[MethodInfo]):
    """Selection of method descriptors."""

    def that_return_void(self) -> Self:
        """Keep methods annotated '-> None'."""
        return self._narrow(lambda m: m.returns_void)

    def that_do_not_return_void(self) -> Self:
        return self._narrow(lambda m: not m.returns_void)

    def that_are_static(self) -> Self:
        """Keep static and class methods."""
        return self._narrow(lambda m: m.is_static)

    def that_are_not_static(self) -> Self:
        return self._narrow(lambda m: not m.is_static)

    def that_are_async(self) -> Self:
        return self._narrow(lambda m: m.is_async)

    def that_are_not_async(self) -> Self:
        return self._narrow(lambda m: not m.is_async)


class PropertySelection(MemberSelection[PropertyInfo]):
    """Selection of property and annotated field descriptors."""

    def that_are_writable(self) -> Self:
        return self._narrow(lambda p: p.is_writable)

    def that_are_read_only(self) -> Self:
        return self._narrow(lambda p: not p.is_writable)


class TypeSelection(Selection[TypeInfo]):
    """Selection of type descriptors, convertible into method and property selections."""

    # Relationship filters -----------------------------

    def that_derive_from(self, base: Any) -> Self:
        """
        Keep types having base in their ancestor chain, excluding base itself.

        An unparameterized generic base matches every parameterization of it.
        """
        _check_type_argument(base, "base")
        return self._narrow(lambda t: t.derives_from(base))

    def that_do_not_derive_from(self, base: Any) -> Self:
        _check_type_argument(base, "base")
        return self._narrow(lambda t: not t.derives_from(base))

    def that_implement(self, interface: type) -> Self:
        """Keep types implementing an abstract base class or protocol, excluding interface itself."""
        _check_type_argument(interface, "interface")
        return self._narrow(lambda t: t.implements(interface))

    def that_do_not_implement(self, interface: type) -> Self:
        _check_type_argument(interface, "interface")
        return self._narrow(lambda t: not t.implements(interface))

    # Marker filters -----------------------------------

    def that_are_decorated_with(
        self, marker_type: type[Marker], predicate: Callable[[Marker], bool] | None = None
    ) -> Self:
        _check_marker_type(marker_type)
        return self._narrow(lambda t: t.is_decorated_with(marker_type, predicate))

    def that_are_not_decorated_with(self, marker_type: type[Marker]) -> Self:
        _check_marker_type(marker_type)
        return self._narrow(lambda t: not t.is_decorated_with(marker_type))

    def that_are_decorated_with_or_inherit(
        self, marker_type: type[Marker], predicate: Callable[[Marker], bool] | None = None
    ) -> Self:
        _check_marker_type(marker_type)
        return self._narrow(lambda t: t.is_decorated_with(marker_type, predicate, inherit=True))

    def that_are_not_decorated_with_or_inherit(self, marker_type: type[Marker]) -> Self:
        _check_marker_type(marker_type)
        return self._narrow(lambda t: not t.is_decorated_with(marker_type, inherit=True))

    # Namespace filters --------------------------------

    def that_are_in_namespace(self, namespace: str | None) -> Self:
        """Keep types defined exactly in the given module."""
        expected = namespace or ""
        return self._narrow(lambda t: t.namespace == expected)

    def that_are_not_in_namespace(self, namespace: str | None) -> Self:
        expected = namespace or ""
        return self._narrow(lambda t: t.namespace != expected)

    def that_are_under_namespace(self, namespace: str | None) -> Self:
        """Keep types defined in the given package or module or below it, None means any."""
        return self._narrow(lambda t: is_under_namespace(t.namespace, namespace))

    def that_are_not_under_namespace(self, namespace: str | None) -> Self:
        return self._narrow(lambda t: not is_under_namespace(t.namespace, namespace))

    # Kind filters -------------------------------------

    def that_are_classes(self) -> Self:
        return self._narrow(lambda t: t.is_class)

    def that_are_not_classes(self) -> Self:
        return self._narrow(lambda t: not t.is_class)

    def that_are_abstract(self) -> Self:
        return self._narrow(lambda t: t.is_abstract)

    def that_are_not_abstract(self) -> Self:
        return self._narrow(lambda t: not t.is_abstract)

    # Flattening ---------------------------------------

    def methods(self) -> MethodSelection:
        """Methods declared by the selected types, type by type in selection order."""
        return MethodSelection(m for t in self._items for m in describe_methods(t.type))

    def properties(self) -> PropertySelection:
        """Properties declared by the selected types, type by type in selection order."""
        return PropertySelection(p for t in self._items for p in describe_properties(t.type))

    def to_types(self) -> list[type]:
        """Materialize the selection as the classes themselves."""
        return [t.type for t in self._items]

    @staticmethod
    def _key(item: TypeInfo) -> Any:
        return item.type

    @staticmethod
    def _name(item: TypeInfo) -> str:
        return item.name


# Methods --------------------------------------------------------------------------------------------------------------

def select_types(source: Any) -> TypeSelection:
    """
    Select types from a class, an iterable of classes, a module or a package.

    Modules contribute the classes they define, including nested ones, in definition
    order. Packages also contribute the classes of all their submodules, which are imported
    and walked in sorted module order. The resulting order is deterministic for a fixed
    set of sources.

    Raises:
        TypeError: If source is None or neither a class, a module nor an iterable of classes.
    """
    return TypeSelection(describe_type(cls) for cls in _resolve_types(source))


def select_methods(source: Any) -> MethodSelection:
    """Select the methods declared by the types of source, see select_types()."""
    return select_types(source).methods()


def select_properties(source: Any) -> PropertySelection:
    """Select the properties declared by the types of source, see select_types()."""
    return select_types(source).properties()


# Private Methods ------------------------------------------------------------------------------------------------------

def _check_marker_type(marker_type: Any) -> None:
    if not (isinstance(marker_type, type) and issubclass(marker_type, Marker)):
        raise TypeError(f"marker_type must be a Marker subclass, got {type_label(marker_type)}")


def _check_type_argument(value: Any, name: str) -> None:
    if value is None:
        raise TypeError(f"{name} cannot be None")


def _module_types(module: types.ModuleType) -> list[type]:
    modules = [module]
    if hasattr(module, "__path__"):
        for info in pkgutil.walk_packages(module.__path__, prefix=module.__name__ + "."):
            modules.append(importlib.import_module(info.name))

    found = []
    for mod in modules:
        for obj in list(vars(mod).values()):
            if isinstance(obj, type) and obj.__module__ == mod.__name__ and obj.__qualname__ == obj.__name__:
                found.append(obj)
                found.extend(_nested_types(obj))
    return found


def _nested_types(cls: type) -> list[type]:
    found = []
    for obj in vars(cls).values():
        if isinstance(obj, type) and obj.__qualname__ == f"{cls.__qualname__}.{obj.__name__}":
            found.append(obj)
            found.extend(_nested_types(obj))
    return found


def _normalize_return_type(return_type: Any) -> Any:
    return NoneType if return_type is None else return_type


def _resolve_types(source: Any) -> list[type]:
    if source is None:
        raise TypeError("source cannot be None")
    if isinstance(source, type):
        return [source]
    if isinstance(source, types.ModuleType):
        return _module_types(source)
    if isinstance(source, (str, bytes)) or not isinstance(source, abc.Iterable):
        raise TypeError(f"source must be a class, a module or an iterable of classes, got {type_label(source)}")

    classes = list(source)
    for cls in classes:
        if not isinstance(cls, type):
            raise TypeError(f"source must contain only classes, got {type_label(cls)}")
    return classes
