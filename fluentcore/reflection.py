"""
Member and type descriptors for selections.

Reflection metadata is read once per type into frozen descriptors carrying the declaring
type, name, visibility, virtual-ness, return type and attached markers. Selection filters
are then plain predicates over these records.

Python has no access modifiers, so visibility follows the naming convention:

    - public name → PUBLIC
    - _name → INTERNAL, the PEP 8 "internal use" indicator
    - __name (mangled) → PRIVATE
    - PROTECTED only through the @visibility decorator, which overrides any of the above

Markers play the role of attributes: instances of Marker subclasses attached to classes,
methods and properties with @decorate, or to annotated fields with typing.Annotated.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import inspect
import sys
import typing

from dataclasses import dataclass, field
from enum import Enum, StrEnum, unique
from functools import cached_property
from typing import Any, Annotated, Callable, ClassVar

# Local ----------------------------------------------------------------------------------------------------------------
from .utils import class_name, namespace_of, type_label

_MARKERS_ATTR = "__markers__"
_VISIBILITY_ATTR = "__visibility__"
_CLASSVAR_NAMES = ("ClassVar", "typing.ClassVar")

NoneType = type(None)


# Classes --------------------------------------------------------------------------------------------------------------

@unique
class Visibility(StrEnum):
    """Member visibility levels, from the most to the least accessible."""
    PUBLIC = "public"
    INTERNAL = "internal"
    PROTECTED = "protected"
    PRIVATE = "private"


@unique
class MethodKind(StrEnum):
    """How a method is bound: to instances, to the class, or not at all."""
    INSTANCE = "instance"
    CLASS = "class"
    STATIC = "static"


class Marker:
    """
    Base class of metadata markers attached with @decorate.

    A marker with `inherited = False` is only visible on the class or member it was
    attached to, never through derived classes or overriding members.

    Examples:
        >>> class Slow(Marker): ...
        >>> @dataclass(frozen=True)
        ... class Category(Marker):
        ...     name: str
        >>> class Jobs:
        ...     @decorate(Slow(), Category("nightly"))
        ...     def rebuild(self) -> None: ...
    """

    inherited: ClassVar[bool] = True


@dataclass(frozen=True, kw_only=True)
class MemberInfo:
    """
    Descriptor of a method or property declared on a class.

    Attributes:
        declaring_type: The class whose body declares the member.
        name: The member name as written in source, mangled private names are restored.
        visibility: Visibility level.
        is_virtual: Whether subclasses can override the member.
        return_type: Resolved return annotation, NoneType for '-> None', Any when missing.
        markers: Markers attached to the member itself.
        inherited_markers: Inheritable markers of the same-named members of base classes.
        member: The raw class attribute, excluded from comparisons.
    """

    declaring_type: type
    name: str
    visibility: Visibility
    is_virtual: bool
    return_type: Any = Any
    markers: tuple[Marker, ...] = ()
    inherited_markers: tuple[Marker, ...] = ()
    member: Any = field(default=None, compare=False, repr=False)

    @property
    def qualified_name(self) -> str:
        return f"{class_name(self.declaring_type)}.{self.name}"

    @property
    def returns_void(self) -> bool:
        return self.return_type is NoneType

    def is_decorated_with(
        self,
        marker_type: type[Marker],
        predicate: Callable[[Marker], bool] | None = None,
        *,
        inherit: bool = False,
    ) -> bool:
        """Check for a marker of exactly marker_type, optionally matching predicate."""
        pool = self.markers + self.inherited_markers if inherit else self.markers
        return _has_marker(pool, marker_type, predicate)


@dataclass(frozen=True, kw_only=True)
class MethodInfo(MemberInfo):
    """
    Descriptor of a method.

    Attributes:
        kind: Instance, class or static method.
        is_async: Coroutine or async generator function.
    """

    kind: MethodKind = MethodKind.INSTANCE
    is_async: bool = False

    @property
    def is_static(self) -> bool:
        """Static and class methods, neither needs an instance."""
        return self.kind in (MethodKind.STATIC, MethodKind.CLASS)


@dataclass(frozen=True, kw_only=True)
class PropertyInfo(MemberInfo):
    """
    Descriptor of a property or an annotated field.

    Attributes:
        is_writable: Whether the value can be assigned.
        is_field: Declared as an annotated class field rather than a property object.
    """

    is_writable: bool = False
    is_field: bool = False


@dataclass(frozen=True, kw_only=True)
class TypeInfo:
    """
    Descriptor of a class.

    Attributes:
        type: The described class.
        bases: Ancestor chain in MRO order, excluding the class itself.
        generic_bases: Parameterized bases declared anywhere in the ancestor chain.
        markers: Markers attached to the class itself.
        inherited_markers: Inheritable markers of the ancestors.
    """

    type: type
    bases: tuple[type, ...] = ()
    generic_bases: tuple[Any, ...] = ()
    markers: tuple[Marker, ...] = ()
    inherited_markers: tuple[Marker, ...] = ()

    @property
    def name(self) -> str:
        return class_name(self.type)

    @property
    def namespace(self) -> str:
        return namespace_of(self.type)

    @property
    def is_class(self) -> bool:
        """Plain classes, as opposed to enums, protocols and named tuples."""
        cls = self.type
        if issubclass(cls, Enum) or vars(cls).get("_is_protocol", False):
            return False
        return not (issubclass(cls, tuple) and hasattr(cls, "_fields"))

    @property
    def is_abstract(self) -> bool:
        return inspect.isabstract(self.type)

    def derives_from(self, base: Any) -> bool:
        """
        Check whether base is in the ancestor chain, excluding the class itself.

        An unparameterized generic base such as Repository matches any parameterization,
        a parameterized one such as Repository[int] matches only that parameterization.
        """
        if base is self.type:
            return False
        if typing.get_origin(base) is not None:
            return base in self.generic_bases
        return base in self.bases

    def implements(self, interface: type) -> bool:
        """
        Check whether the class implements an abstract base class or protocol.

        Uses issubclass() so ABC registration and runtime checkable protocols are honored,
        falling back to the ancestor chain for protocols that reject issubclass(), and to the
        declared generic bases for parameterized interfaces such as Iterable[int].
        """
        if interface is self.type:
            return False
        try:
            return issubclass(self.type, interface)
        except TypeError:
            return interface in self.bases or interface in self.generic_bases

    def is_decorated_with(
        self,
        marker_type: type[Marker],
        predicate: Callable[[Marker], bool] | None = None,
        *,
        inherit: bool = False,
    ) -> bool:
        """Check for a marker of exactly marker_type, optionally matching predicate."""
        pool = self.markers + self.inherited_markers if inherit else self.markers
        return _has_marker(pool, marker_type, predicate)


# Methods --------------------------------------------------------------------------------------------------------------

def decorate(*markers: Marker | type[Marker]):
    """
    Attach markers to a class, a function, a property or a static or class method.

    Marker classes are instantiated without arguments. Markers of properties are stored on
    the getter, markers of static and class methods on the underlying function, so the
    decorator works above or below @property, @staticmethod and @classmethod.

    Raises:
        TypeError: If a marker is not a Marker instance or class,
            or the decorated object cannot carry markers.

    Examples:
        >>> @decorate(Entity)
        ... class User:
        ...     @property
        ...     @decorate(Indexed(unique=True))
        ...     def email(self) -> str: ...
    """
    instances = []
    for marker in markers:
        if isinstance(marker, type) and issubclass(marker, Marker):
            marker = marker()
        if not isinstance(marker, Marker):
            raise TypeError(f"markers must be Marker instances or classes, got {type_label(marker)}")
        instances.append(marker)

    def apply(target):
        holder = _holder(target)
        setattr(holder, _MARKERS_ATTR, _declared_markers(holder) + tuple(instances))
        return target

    return apply


def visibility(level: Visibility | str):
    """
    Override the visibility a member gets from its name.

    Raises:
        ValueError: If level is not a Visibility value.
        TypeError: If the decorated object is not a member.

    Examples:
        >>> class Widget:
        ...     @visibility(Visibility.PROTECTED)
        ...     def render_frame(self) -> None: ...
    """
    level = Visibility(level)

    def apply(target):
        holder = _holder(target)
        if isinstance(holder, type):
            raise TypeError(f"visibility applies to members, got {type_label(target)}")
        setattr(holder, _VISIBILITY_ATTR, level)
        return target

    return apply


def markers_of(target: Any, *, inherit: bool = False) -> tuple[Marker, ...]:
    """
    Markers attached to a class or member.

    Args:
        target: A class, function, property, or static or class method.
        inherit: For classes, also return the inheritable markers of the ancestors.

    Returns:
        Own markers in attachment order, followed by inherited ones when requested.
    """
    holder = _holder(target)
    own = _declared_markers(holder)
    if not inherit or not isinstance(holder, type):
        return own
    return own + _inherited_type_markers(holder)


def describe_type(cls: type) -> TypeInfo:
    """Build the descriptor of a class."""
    _check_type(cls)
    generic_bases = []
    for base in cls.__mro__:
        generic_bases.extend(vars(base).get("__orig_bases__", ()))
    return TypeInfo(
        type=cls,
        bases=cls.__mro__[1:],
        generic_bases=tuple(generic_bases),
        markers=_declared_markers(cls),
        inherited_markers=_inherited_type_markers(cls),
    )


def describe_methods(cls: type) -> tuple[MethodInfo, ...]:
    """
    Build the descriptors of the methods declared in the body of a class.

    Inherited methods, dunder methods and properties are excluded. Methods keep their
    declaration order.
    """
    _check_type(cls)
    methods = []
    for attr_name, raw in vars(cls).items():
        if _is_dunder(attr_name):
            continue
        if isinstance(raw, staticmethod):
            func, kind = raw.__func__, MethodKind.STATIC
        elif isinstance(raw, classmethod):
            func, kind = raw.__func__, MethodKind.CLASS
        elif inspect.isfunction(raw):
            func, kind = raw, MethodKind.INSTANCE
        else:
            continue

        level = _visibility(cls, attr_name, func)
        methods.append(
            MethodInfo(
                declaring_type=cls,
                name=_source_name(cls, attr_name),
                visibility=level,
                is_virtual=_is_virtual(cls, func, level, static=kind == MethodKind.STATIC),
                return_type=_return_type(func),
                markers=_declared_markers(func),
                inherited_markers=_inherited_member_markers(cls, attr_name),
                member=raw,
                kind=kind,
                is_async=inspect.iscoroutinefunction(func) or inspect.isasyncgenfunction(func),
            )
        )
    return tuple(methods)


def describe_properties(cls: type) -> tuple[PropertyInfo, ...]:
    """
    Build the descriptors of the properties declared in the body of a class.

    Annotated class fields come first in annotation order, ClassVar fields excluded; then
    property and cached_property objects in declaration order.
    """
    _check_type(cls)
    properties = []

    annotations = inspect.get_annotations(cls)
    if annotations:
        try:
            hints = typing.get_type_hints(cls, include_extras=True)
        except Exception:
            # Field by field, an unresolvable annotation stays a string
            hints = {name: _resolve_field_hint(cls, raw) for name, raw in annotations.items()}
        params = getattr(cls, "__dataclass_params__", None)
        frozen = bool(params is not None and params.frozen)

        for attr_name, raw_hint in annotations.items():
            hint = hints.get(attr_name, raw_hint)
            if _is_dunder(attr_name) or _is_classvar(hint):
                continue
            base_hint, metadata = _split_annotated(hint)
            properties.append(
                PropertyInfo(
                    declaring_type=cls,
                    name=_source_name(cls, attr_name),
                    visibility=_visibility(cls, attr_name, None),
                    is_virtual=False,
                    return_type=_normalize_none(base_hint),
                    markers=tuple(m for m in metadata if isinstance(m, Marker)),
                    inherited_markers=_inherited_field_markers(cls, attr_name),
                    member=hint,
                    is_writable=not frozen,
                    is_field=True,
                )
            )

    for attr_name, raw in vars(cls).items():
        if _is_dunder(attr_name) or not isinstance(raw, (property, cached_property)):
            continue
        getter = raw.fget if isinstance(raw, property) else raw.func
        level = _visibility(cls, attr_name, getter)
        properties.append(
            PropertyInfo(
                declaring_type=cls,
                name=_source_name(cls, attr_name),
                visibility=level,
                is_virtual=getter is not None and _is_virtual(cls, getter, level, static=False),
                return_type=_return_type(getter) if getter is not None else Any,
                markers=_declared_markers(getter) if getter is not None else (),
                inherited_markers=_inherited_member_markers(cls, attr_name),
                member=raw,
                is_writable=isinstance(raw, property) and raw.fset is not None,
            )
        )
    return tuple(properties)


# Private Methods ------------------------------------------------------------------------------------------------------

def _check_type(cls: Any) -> None:
    if cls is None:
        raise TypeError("type cannot be None")
    if not isinstance(cls, type):
        raise TypeError(f"type must be a class, got {type_label(cls)}")


def _declared_markers(holder: Any) -> tuple[Marker, ...]:
    """Markers stored directly on holder, never looked up through inheritance."""
    if holder is None:
        return ()
    namespace = getattr(holder, "__dict__", None) or {}
    return tuple(namespace.get(_MARKERS_ATTR, ()))


def _has_marker(pool: tuple[Marker, ...], marker_type: type, predicate: Callable[[Marker], bool] | None) -> bool:
    return any(type(m) is marker_type and (predicate is None or predicate(m)) for m in pool)


def _holder(target: Any) -> Any:
    """Object on which the markers and visibility of target are stored."""
    if isinstance(target, property):
        if target.fget is None:
            raise TypeError("property without a getter cannot carry markers")
        return target.fget
    if isinstance(target, cached_property):
        return target.func
    if isinstance(target, (staticmethod, classmethod)):
        return target.__func__
    if isinstance(target, type) or inspect.isfunction(target):
        return target
    if inspect.ismethod(target):
        return target.__func__
    raise TypeError(f"markers apply to classes and functions, got {type_label(target)}")


def _inherited_field_markers(cls: type, attr_name: str) -> tuple[Marker, ...]:
    found = []
    for base in cls.__mro__[1:]:
        raw_hint = inspect.get_annotations(base).get(attr_name)
        if raw_hint is None:
            continue
        _, metadata = _split_annotated(_resolve_field_hint(base, raw_hint))
        found.extend(m for m in metadata if isinstance(m, Marker) and type(m).inherited)
    return tuple(found)


def _inherited_member_markers(cls: type, attr_name: str) -> tuple[Marker, ...]:
    found = []
    for base in cls.__mro__[1:]:
        raw = vars(base).get(attr_name)
        if raw is None:
            continue
        try:
            holder = _holder(raw)
        except TypeError:
            continue
        found.extend(m for m in _declared_markers(holder) if type(m).inherited)
    return tuple(found)


def _inherited_type_markers(cls: type) -> tuple[Marker, ...]:
    return tuple(
        m for base in cls.__mro__[1:] for m in _declared_markers(base) if type(m).inherited
    )


def _is_classvar(hint: Any) -> bool:
    if isinstance(hint, str):
        text = hint.strip()
        return text in _CLASSVAR_NAMES or text.startswith(tuple(f"{name}[" for name in _CLASSVAR_NAMES))
    return hint is ClassVar or typing.get_origin(hint) is ClassVar


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _is_virtual(cls: type, func: Callable, level: Visibility, *, static: bool) -> bool:
    """Overridable unless static, private, or final on the function or its class."""
    if static or level == Visibility.PRIVATE:
        return False
    if vars(cls).get("__final__", False):
        return False
    return not getattr(func, "__final__", False)


def _mangled_prefix(cls: type) -> str | None:
    stripped = cls.__name__.lstrip("_")
    return f"_{stripped}__" if stripped else None


def _normalize_none(hint: Any) -> Any:
    return NoneType if hint is None else hint


def _resolve_field_hint(cls: type, hint: Any) -> Any:
    """Evaluate a string annotation in the namespace of its class, keeping the string when it fails."""
    if not isinstance(hint, str):
        return hint
    module = sys.modules.get(cls.__module__)
    globalns = dict(vars(module)) if module is not None else {}
    try:
        return eval(hint, globalns, dict(vars(cls)))
    except Exception:
        return hint


def _return_type(func: Callable) -> Any:
    """Resolved return annotation, the raw one when forward references cannot be resolved."""
    try:
        hints = typing.get_type_hints(func)
    except Exception:
        hints = dict(getattr(func, "__annotations__", None) or {})
    if "return" not in hints:
        return Any
    return _normalize_none(hints["return"])


def _source_name(cls: type, attr_name: str) -> str:
    """Restore a mangled name: '_Vault__secret' becomes '__secret'."""
    prefix = _mangled_prefix(cls)
    if prefix and attr_name.startswith(prefix):
        return "__" + attr_name[len(prefix):]
    return attr_name


def _split_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    if typing.get_origin(hint) is Annotated:
        return hint.__origin__, hint.__metadata__
    return hint, ()


def _visibility(cls: type, attr_name: str, holder: Any) -> Visibility:
    explicit = (getattr(holder, "__dict__", None) or {}).get(_VISIBILITY_ATTR)
    if explicit is not None:
        return explicit
    prefix = _mangled_prefix(cls)
    if prefix and attr_name.startswith(prefix):
        return Visibility.PRIVATE
    if attr_name.startswith("_"):
        return Visibility.INTERNAL
    return Visibility.PUBLIC
