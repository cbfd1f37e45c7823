"""
Formatter registry for value formatting.

A FormatterRegistry is built once, frozen, and then handed to every formatting call.
It holds an ordered list of built-in formatters plus a type-keyed map of custom formatters.
Custom formatters are either registered explicitly or discovered from functions marked
with the @value_formatter decorator.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import importlib
import inspect
import types
import typing
import warnings

from dataclasses import dataclass
from enum import StrEnum, unique
from typing import Any, Callable, Iterable, Iterator, Literal, Mapping, Self

# Third-party ----------------------------------------------------------------------------------------------------------
from frozendict import frozendict

# Local ----------------------------------------------------------------------------------------------------------------
from .utils import class_name, type_label

_MARK_ATTR = "__value_formatter__"


# Classes --------------------------------------------------------------------------------------------------------------

@unique
class DetectionMode(StrEnum):
    """
    Custom formatter detection modes:
        - "disabled": only explicitly registered formatters are used
        - "specific": marked formatters in the configured modules are discovered
    """
    DISABLED = "disabled"
    SPECIFIC = "specific"


@dataclass(frozen=True)
class BuiltinFormatter:
    """
    A built-in formatter entry.

    Attributes:
        name: Short identifier, used in diagnostics and tests.
        can_handle: Predicate deciding whether the entry renders a value.
        format: Callable receiving (value, context) and returning the rendered string.
    """

    name: str
    can_handle: Callable[[Any], bool]
    format: Callable[[Any, Any], str]


@dataclass(frozen=True)
class _Mark:
    """Marker stored on functions decorated with @value_formatter."""
    for_type: type | None = None


class FormatterRegistry:
    """
    Registry resolving which formatter renders a value.

    Lookup order is deterministic: the custom formatter registered for the value's exact
    type, then the one registered for its nearest ancestor in the MRO, then the first
    built-in formatter whose predicate accepts the value.

    The registry is mutable while being populated. After freeze() the custom map becomes
    a frozendict and any further registration raises RuntimeError, so a frozen registry
    can be shared between threads.

    Examples:
        >>> registry = FormatterRegistry().register_formatter(Path, lambda p: f"path {p}")
        >>> registry.get_custom_formatter(Path("/tmp"))(Path("/tmp"))
        'path /tmp'
    """

    def __init__(self, builtins: Iterable[BuiltinFormatter] = ()):
        builtins = tuple(builtins)
        for entry in builtins:
            if not isinstance(entry, BuiltinFormatter):
                raise TypeError(f"builtins must contain BuiltinFormatter entries, got {type_label(entry)}")
        self._builtins: tuple[BuiltinFormatter, ...] = builtins
        self._custom: dict[type, Callable[[Any], str]] | frozendict = {}
        self._frozen = False

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "mutable"
        return f"<FormatterRegistry: {len(self._builtins)} builtin, {len(self._custom)} custom, {state}>"

    # Properties ---------------------------------------

    @property
    def builtins(self) -> tuple[BuiltinFormatter, ...]:
        """Built-in formatters in lookup order."""
        return self._builtins

    @property
    def custom_formatters(self) -> Mapping[type, Callable[[Any], str]]:
        """Read-only view of the custom formatters keyed by type."""
        return types.MappingProxyType(self._custom) if not self._frozen else self._custom

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # Methods ------------------------------------------

    def register_formatter(self, typ: type, formatter: Callable[[Any], str]) -> Self:
        """
        Register or override a custom formatter for a specific type.

        The formatter also applies to subclasses of typ unless a formatter is registered
        for a closer ancestor. Registering a type twice replaces the earlier formatter.

        Args:
            typ: The type to format.
            formatter: A callable receiving the value and returning its display string.

        Returns:
            Self, to allow chaining.

        Raises:
            TypeError: If typ is not a class or formatter is not callable.
            RuntimeError: If the registry is frozen.
        """
        self._check_mutable()
        _check_formatter_type(typ)
        if not callable(formatter):
            raise TypeError(f"formatter must be callable, got {type_label(formatter)}")
        self._custom[typ] = formatter
        return self

    def remove_formatter(self, typ: type) -> Self:
        """
        Remove the custom formatter of a specific type if one is registered.

        Returns:
            Self, to allow chaining.

        Raises:
            TypeError: If typ is not a class.
            RuntimeError: If the registry is frozen.
        """
        self._check_mutable()
        _check_formatter_type(typ)
        self._custom.pop(typ, None)
        return self

    def discover(self, *sources: Any, on_error: Literal["raise", "warn", "skip"] = "raise") -> Self:
        """
        Register the @value_formatter functions found in the given sources.

        A source is a module, a dotted module name or a class. Modules are scanned for
        marked functions and for marked static methods of the classes they define; classes
        are scanned for marked static and class methods. Sources are processed in order and
        functions in definition order. Every marked function must declare exactly one
        parameter, and its type comes from @value_formatter(for_type=...) or, failing that,
        from the parameter annotation.

        When two discovered formatters target the same exact type, the later one wins and a
        RuntimeWarning is issued.

        Args:
            *sources: Modules, module names or classes to scan.
            on_error: How to handle sources that fail to import and malformed formatters:
                - "raise": propagate ImportError or TypeError (default)
                - "warn": issue a RuntimeWarning and continue
                - "skip": ignore silently and continue

        Returns:
            Self, to allow chaining.

        Raises:
            TypeError: If a source is not a module, a module name or a class,
                or a marked function is malformed and on_error="raise".
            ImportError: If a module name cannot be imported and on_error="raise".
            ValueError: If on_error is not a supported literal.
            RuntimeError: If the registry is frozen.
        """
        self._check_mutable()
        if on_error not in ("raise", "warn", "skip"):
            raise ValueError(f"on_error must be 'raise', 'warn' or 'skip', got {on_error!r}")

        for source in sources:
            try:
                candidates = list(_source_functions(source))
            except ImportError as exc:
                _handle_discovery_error(exc, on_error)
                continue

            for formatter in candidates:
                try:
                    typ = _formatter_type(formatter)
                except TypeError as exc:
                    _handle_discovery_error(exc, on_error)
                    continue

                previous = self._custom.get(typ)
                if previous is not None and previous is not formatter:
                    warnings.warn(
                        f"Value formatter {_qualname(formatter)} replaces {_qualname(previous)} "
                        f"for type {class_name(typ, fully_qualified=True)}",
                        RuntimeWarning,
                        stacklevel=2,
                    )
                self._custom[typ] = formatter
        return self

    def freeze(self) -> Self:
        """Make the registry immutable. Calling freeze() again is a no-op."""
        if not self._frozen:
            self._custom = frozendict(self._custom)
            self._frozen = True
        return self

    def get_custom_formatter(self, value: Any) -> Callable[[Any], str] | None:
        """
        Get the custom formatter for the value's type (exact or via inheritance).

        Walks the MRO of type(value) so the formatter registered for the nearest ancestor
        wins over one registered for a more distant ancestor.

        Returns:
            The formatter if found; otherwise None.
        """
        if not self._custom:
            return None
        for base in type(value).__mro__:
            formatter = self._custom.get(base)
            if formatter is not None:
                return formatter
        return None

    def get_builtin_formatter(self, value: Any) -> BuiltinFormatter | None:
        """Get the first built-in formatter accepting the value, or None."""
        for entry in self._builtins:
            if entry.can_handle(value):
                return entry
        return None

    # Private Methods ----------------------------------

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("FormatterRegistry is frozen and cannot be modified")


# Methods --------------------------------------------------------------------------------------------------------------

def value_formatter(func: Callable | None = None, *, for_type: type | None = None):
    """
    Mark a function as a custom value formatter for discovery.

    Can be used bare, in which case the formatted type is read from the annotation of the
    single parameter, or with an explicit for_type. Works on plain functions and on
    static or class methods in either decorator order.

    Examples:
        >>> @value_formatter
        ... def format_money(value: Money) -> str:
        ...     return f"{value.amount} {value.currency}"

        >>> class Formatters:
        ...     @staticmethod
        ...     @value_formatter(for_type=Point)
        ...     def point(value):
        ...         return f"({value.x}, {value.y})"

    Raises:
        TypeError: If for_type is given and is not a class, or the target is not callable.
    """
    if for_type is not None:
        _check_formatter_type(for_type)

    def mark(target):
        function = _unwrap_method(target)
        if not callable(function):
            raise TypeError(f"value_formatter target must be callable, got {type_label(target)}")
        setattr(function, _MARK_ATTR, _Mark(for_type))
        return target

    if func is None:
        return mark
    return mark(func)


def is_value_formatter(obj: Any) -> bool:
    """Check whether obj was marked with @value_formatter."""
    return isinstance(getattr(_unwrap_method(obj), _MARK_ATTR, None), _Mark)


# Private Methods ------------------------------------------------------------------------------------------------------

def _check_formatter_type(typ: Any) -> None:
    if not isinstance(typ, type) or typing.get_origin(typ) is not None:
        raise TypeError(f"typ must be a class, got {type_label(typ)}")


def _formatter_type(formatter: Callable) -> type:
    """Resolve the type a marked formatter handles."""
    mark: _Mark = getattr(_unwrap_method(formatter), _MARK_ATTR)
    name = _qualname(formatter)

    try:
        parameters = list(inspect.signature(formatter).parameters.values())
    except (TypeError, ValueError) as exc:
        raise TypeError(f"Value formatter {name} has no inspectable signature") from exc

    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    if len(parameters) != 1 or parameters[0].kind not in positional:
        raise TypeError(f"Value formatter {name} must declare exactly one parameter, got {len(parameters)}")

    if mark.for_type is not None:
        return mark.for_type

    try:
        hints = typing.get_type_hints(_unwrap_method(formatter))
    except Exception as exc:
        raise TypeError(f"Value formatter {name} has unresolvable annotations: {exc}") from exc

    typ = hints.get(parameters[0].name)
    if typ is None:
        raise TypeError(f"Value formatter {name} must annotate its parameter or use for_type")
    _check_formatter_type(typ)
    return typ


def _handle_discovery_error(exc: Exception, on_error: str) -> None:
    if on_error == "raise":
        raise exc
    if on_error == "warn":
        warnings.warn(
            f"Value formatter discovery failed: {type(exc).__name__}: {exc}",
            RuntimeWarning,
            stacklevel=3,
        )


def _qualname(obj: Any) -> str:
    function = _unwrap_method(obj)
    module = getattr(function, "__module__", None)
    name = getattr(function, "__qualname__", None) or repr(function)
    return f"{module}.{name}" if module else name


def _source_functions(source: Any) -> Iterator[Callable]:
    """Yield the marked callables of a module, module name or class, in definition order."""
    if source is None:
        raise TypeError("source cannot be None")
    if isinstance(source, str):
        source = importlib.import_module(source)

    if isinstance(source, types.ModuleType):
        for obj in list(vars(source).values()):
            if inspect.isfunction(obj) and obj.__module__ == source.__name__ and is_value_formatter(obj):
                yield obj
            elif isinstance(obj, type) and obj.__module__ == source.__name__:
                yield from _class_functions(obj)
    elif isinstance(source, type):
        yield from _class_functions(source)
    else:
        raise TypeError(f"source must be a module, a module name or a class, got {type_label(source)}")


def _class_functions(cls: type) -> Iterator[Callable]:
    for name, raw in list(vars(cls).items()):
        if isinstance(raw, (staticmethod, classmethod)) and is_value_formatter(raw):
            # Bound through the class so classmethods receive cls
            yield getattr(cls, name)


def _unwrap_method(obj: Any) -> Any:
    if isinstance(obj, (staticmethod, classmethod)):
        return obj.__func__
    if inspect.ismethod(obj):
        return obj.__func__
    return obj
