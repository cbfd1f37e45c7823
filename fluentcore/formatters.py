"""
Value formatting for assertion failure messages.

Turns any runtime value into a human-readable string for "expected X, but found Y" messages.
Handles cyclic object graphs, properties that raise, deeply nested structures, XML nodes and
user supplied formatters. The top-level to_display_string() never raises: a failure while
rendering any part of a value is replaced by an inline diagnostic.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import collections.abc as abc
import dataclasses
import datetime as dt
import textwrap
import typing
import uuid

from dataclasses import dataclass, replace as dataclasses_replace
from enum import Enum
from functools import cached_property
from itertools import islice
from numbers import Number
from typing import Any, Callable, Iterable, Literal, Self, Tuple

# Local ----------------------------------------------------------------------------------------------------------------
from .registry import BuiltinFormatter, DetectionMode, FormatterRegistry
from .utils import class_name, type_label, type_name
from .xml import (
    format_xml_attribute,
    format_xml_document,
    format_xml_element,
    is_xml_attribute,
    is_xml_document,
    is_xml_element,
)

NULL_TEXT = "<null>"
EMPTY_MAPPING_TEXT = "{empty}"

_INDENT = " " * 4


# Classes --------------------------------------------------------------------------------------------------------------

@dataclass(frozen=True)
class FormattingOptions:
    """
    Options controlling how values are rendered.

    Attributes:
        max_depth: Nesting levels rendered before the depth marker replaces deeper values.
        max_items: Items of a collection or mapping shown before the '…N more…' marker.
        max_lines: Lines of top-level output kept before the output is cut.
        max_repr: Length of raw repr() fallbacks and bytes reprs before truncation.
        use_line_breaks: Render object dumps on multiple lines with 4-space indentation.
        fully_qualified: Prefix user type names with their module path.
        detection_mode: Custom formatter discovery mode of the default registry.
        formatter_modules: Module names scanned when detection_mode is "specific".

    Examples:
        >>> FormattingOptions().merge(max_items=3)
        FormattingOptions(max_depth=5, max_items=3, ...)
    """

    max_depth: int = 5
    max_items: int = 32
    max_lines: int = 100
    max_repr: int = 120
    use_line_breaks: bool = False
    fully_qualified: bool = False
    detection_mode: DetectionMode = DetectionMode.DISABLED
    formatter_modules: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate limits, flags and discovery settings."""
        for name, minimum in (("max_depth", 0), ("max_items", 1), ("max_lines", 1), ("max_repr", 1)):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, int):
                raise TypeError(f"FormattingOptions.{name} must be an int, got {type_label(val)}")
            if val < minimum:
                raise ValueError(f"FormattingOptions.{name} must be >={minimum}, but got {val!r}")

        for name in ("use_line_breaks", "fully_qualified"):
            val = getattr(self, name)
            if not isinstance(val, bool):
                raise TypeError(f"FormattingOptions.{name} must be a bool, got {type_label(val)}")

        object.__setattr__(self, "detection_mode", DetectionMode(self.detection_mode))

        modules = self.formatter_modules
        if isinstance(modules, str) or not isinstance(modules, Iterable):
            raise TypeError(f"FormattingOptions.formatter_modules must be an iterable of str, got {type_label(modules)}")
        modules = tuple(modules)
        for module in modules:
            if not isinstance(module, str):
                raise TypeError(f"FormattingOptions.formatter_modules must contain str, got {type_label(module)}")
        object.__setattr__(self, "formatter_modules", modules)

    # Class Methods ------------------------------------

    @classmethod
    def compact(cls) -> "FormattingOptions":
        """Short single-line output for log lines and one-line messages."""
        return cls(max_depth=2, max_items=8, max_lines=20, max_repr=60)

    @classmethod
    def debug(cls) -> "FormattingOptions":
        """Deep multi-line output with fully qualified type names."""
        return cls(
            max_depth=10,
            max_items=100,
            max_lines=1000,
            max_repr=500,
            use_line_breaks=True,
            fully_qualified=True,
        )

    # Methods ------------------------------------------

    def merge(self, **kwargs) -> Self:
        """Return a copy with the given fields replaced."""
        return dataclasses_replace(self, **kwargs)


class FormattingContext:
    """
    State of one top-level formatting call.

    Tracks the ids of the values currently being rendered, which is the ancestor path
    used for cycle detection, and the nesting depth used by the depth limit. Only ancestors
    count as cycles: the same object appearing at two sibling positions is rendered twice.

    A context is created per call and must not be shared between threads.

    Args:
        options: Rendering options, defaults to the module configuration.
        registry: Formatter registry, defaults to default_registry().
    """

    def __init__(self, options: FormattingOptions | None = None, registry: FormatterRegistry | None = None):
        if options is not None and not isinstance(options, FormattingOptions):
            raise TypeError(f"options must be FormattingOptions, got {type_label(options)}")
        if registry is not None and not isinstance(registry, FormatterRegistry):
            raise TypeError(f"registry must be a FormatterRegistry, got {type_label(registry)}")

        self.options: FormattingOptions = options if options is not None else get_options()
        self.registry: FormatterRegistry = registry if registry is not None else default_registry()
        self.depth = 0
        self._ancestors: set[int] = set()

    def format(self, value: Any) -> str:
        """Render a value at the current depth."""
        if value is None:
            return NULL_TEXT

        key = id(value)
        if key in self._ancestors:
            return f"{{cyclic reference to type {self.type_name(value)} detected}}"

        self._ancestors.add(key)
        try:
            return self._dispatch(value)
        except Exception as exc:
            return f"{{formatting {self.type_name(value)} failed: {type(exc).__name__}}}"
        finally:
            self._ancestors.discard(key)

    def format_child(self, value: Any) -> str:
        """Render a value nested one level below the current one."""
        self.depth += 1
        try:
            if self.depth > self.options.max_depth:
                return f"{{maximum recursion depth of {self.options.max_depth} was reached}}"
            return self.format(value)
        finally:
            self.depth -= 1

    def type_name(self, value: Any) -> str:
        """Type name of a value honoring the fully_qualified option."""
        return class_name(value, fully_qualified=self.options.fully_qualified)

    def _dispatch(self, value: Any) -> str:
        custom = self.registry.get_custom_formatter(value)
        if custom is not None:
            text = custom(value)
            if not isinstance(text, str):
                raise TypeError(f"custom formatter must return str, got {type_label(text)}")
            return text

        builtin = self.registry.get_builtin_formatter(value)
        if builtin is None:
            return _fmt_truncate(_safe_repr(value), self.options.max_repr)
        return builtin.format(value, self)


# Module configuration -------------------------------------------------------------------------------------------------

_options = FormattingOptions()
_default_registry: FormatterRegistry | None = None


def configure(preset: Literal["default", "compact", "debug"] | None = None, **overrides) -> FormattingOptions:
    """
    Configure module-level formatting options.

    A preset replaces the current options; None keeps them. Keyword overrides are then
    merged on top. The cached default registry is discarded so discovery settings take
    effect on the next formatting call.

    Args:
        preset: "default", "compact", "debug" or None to keep the current options.
        **overrides: FormattingOptions fields to replace.

    Returns:
        The new module options.

    Raises:
        ValueError: If preset is not supported.
        TypeError: If an override is not a FormattingOptions field or has a wrong type.

    Examples:
        >>> configure(preset="compact", max_items=4)
        >>> configure(detection_mode="specific", formatter_modules=["myapp.formatters"])
    """
    global _options, _default_registry

    if preset is None:
        base = _options
    elif preset == "default":
        base = FormattingOptions()
    elif preset == "compact":
        base = FormattingOptions.compact()
    elif preset == "debug":
        base = FormattingOptions.debug()
    else:
        raise ValueError(f"preset must be 'default', 'compact', 'debug' or None, got {preset!r}")

    _options = base.merge(**overrides) if overrides else base
    _default_registry = None
    return _options


def get_options() -> FormattingOptions:
    """Return the current module-level formatting options."""
    return _options


def create_registry(*sources: Any, on_error: Literal["raise", "warn", "skip"] = "raise") -> FormatterRegistry:
    """
    Create a frozen registry with all built-in formatters plus the ones discovered in sources.

    Args:
        *sources: Modules, module names or classes holding @value_formatter functions.
        on_error: Discovery error handling, see FormatterRegistry.discover().

    Returns:
        A frozen FormatterRegistry.
    """
    registry = FormatterRegistry(BUILTIN_FORMATTERS)
    if sources:
        registry.discover(*sources, on_error=on_error)
    return registry.freeze()


def default_registry() -> FormatterRegistry:
    """
    Return the process-wide registry built from the module configuration.

    Built lazily on first use and cached until the next configure() call. In "specific"
    detection mode the configured formatter modules are scanned, with discovery failures
    reported as warnings so that formatting never raises.
    """
    global _default_registry

    if _default_registry is None:
        sources = _options.formatter_modules if _options.detection_mode == DetectionMode.SPECIFIC else ()
        _default_registry = create_registry(*sources, on_error="warn")
    return _default_registry


# Methods --------------------------------------------------------------------------------------------------------------

def to_display_string(
    value: Any,
    options: FormattingOptions | None = None,
    *,
    registry: FormatterRegistry | None = None,
) -> str:
    """
    Render any value as a display string for failure messages.

    Main entry point of the formatter. Dispatch order for every value, first match wins:

        - None → '<null>'
        - custom formatter of the value's type or its nearest ancestor → its output as is
        - Enum → 'Color.RED'
        - str → '"text"'
        - numbers → repr()
        - bytes, bytearray → repr() truncated to max_repr
        - UUID → '9b2f2a9e-...'
        - datetime, date, time → '<2024-05-01 20:15:30.318 UTC+3>' without irrelevant parts
        - timedelta → str()
        - classes and typing constructs → type name
        - XML attributes, elements and documents → 'id="1"', '<user />', '<root>...</root>'
        - exceptions → 'ValueError with message "boom"' followed by the chain of causes
        - mappings → '{key: value}' or '{empty}'
        - namedtuples → object dump
        - other sized collections → '[a, b]', '(a, b)' or '{a, b}' with '…N more…' truncation
        - objects with their own __str__ or __repr__ → that string
        - everything else → object dump 'TypeName { a = 1, b = "x" }'

    Args:
        value: Any Python object.
        options: Per-call rendering options, defaults to the module configuration.
        registry: Formatter registry, defaults to default_registry().

    Returns:
        The display string. Formatting errors are rendered inline, never raised.

    Raises:
        TypeError: If options or registry has a wrong type.

    Examples:
        >>> to_display_string(None)
        '<null>'
        >>> to_display_string({"id": 1, "tags": ["a", "b"]})
        '{"id": 1, "tags": ["a", "b"]}'
        >>> to_display_string(User(name="Ann", age=42))
        'User { name = "Ann", age = 42 }'
    """
    context = FormattingContext(options, registry)
    try:
        text = context.format(value)
    except Exception as exc:
        return f"{{formatting {class_name(value)} failed: {type(exc).__name__}}}"
    return _fmt_limit_lines(text, context.options.max_lines)


def format_value(value: Any, context: FormattingContext | None = None) -> str:
    """
    Render a value, nested below the current value of context when one is given.

    Without a context this is to_display_string(value) with the module configuration.
    With a context the value shares its cycle detection and depth limit, which lets
    formatter code render member values of the object it is formatting.
    """
    if context is None:
        return to_display_string(value)
    return context.format_child(value)


# Private Methods ------------------------------------------------------------------------------------------------------

def _fmt_brackets(value: abc.Collection) -> Tuple[str, str]:
    if isinstance(value, tuple):
        return "(", ")"
    if isinstance(value, abc.Set):
        return "{", "}"
    return "[", "]"


def _fmt_exception_summary(exc: BaseException) -> str:
    """Exception type name and message, for faults raised while reading members."""
    try:
        message = str(exc)
    except Exception:
        message = ""
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def _fmt_head(iterable: Iterable[Any], n: int) -> Tuple[list[Any], bool]:
    """Take up to n items and indicate whether there were more items."""
    it = iter(iterable)
    buf = list(islice(it, n + 1))
    if len(buf) <= n:
        return buf, False
    return buf[:n], True


def _fmt_join(opening: str, parts: list[str], closing: str, context: FormattingContext) -> str:
    """Join rendered items, one per indented line when multi-line items are present."""
    if context.options.use_line_breaks and any("\n" in part for part in parts):
        body = ",\n".join(textwrap.indent(part, _INDENT) for part in parts)
        return f"{opening}\n{body}\n{closing}"
    return opening + ", ".join(parts) + closing


def _fmt_limit_lines(text: str, max_lines: int) -> str:
    lines = text.splitlines()
    if len(lines) <= max_lines:
        return text
    kept = "\n".join(lines[:max_lines])
    return f"{kept}\n(output has exceeded the maximum of {max_lines} lines)"


def _fmt_more(count: int) -> str:
    return f"…{count} more…"


def _fmt_offset(offset: dt.timedelta) -> str:
    minutes = round(offset.total_seconds() / 60)
    if minutes == 0:
        return "UTC"
    sign = "+" if minutes > 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"UTC{sign}{hours}:{minutes:02d}" if minutes else f"UTC{sign}{hours}"


def _fmt_time(value: dt.time) -> str:
    text = f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    return text


def _fmt_truncate(repr_: str, max_len: int, ellipsis: str = "…") -> str:
    """
    Truncate repr_ to at most max_len characters before appending the ellipsis.

    For bytes and bytearray reprs max_len refers to the quoted content, and the closing
    quote and parenthesis are kept.
    """
    if len(repr_) <= max_len:
        return repr_

    for prefix, suffix in (("bytearray(b", ")"), ("b", "")):
        if repr_.startswith(prefix) and repr_[len(prefix):len(prefix) + 1] in ("'", '"'):
            quote = repr_[len(prefix)]
            start = len(prefix) + 1
            return f"{prefix}{quote}{repr_[start:start + max_len]}{ellipsis}{quote}{suffix}"

    return repr_[:max_len] + ellipsis


def _has_own_string(value: Any) -> bool:
    """Check whether the value's class overrides __str__ or __repr__."""
    cls = type(value)
    if cls.__str__ is not object.__str__:
        return True
    owner = next((base for base in cls.__mro__ if "__repr__" in vars(base)), object)
    if owner is object or _is_namedtuple(value):
        return False
    # Generated dataclass reprs do not count
    params = vars(owner).get("__dataclass_params__")
    return params is None or not params.repr


def _is_collection(value: Any) -> bool:
    return isinstance(value, abc.Collection) and not isinstance(value, (str, bytes, bytearray, memoryview))


def _is_namedtuple(value: Any) -> bool:
    return isinstance(value, tuple) and hasattr(type(value), "_fields")


def _is_type(value: Any) -> bool:
    return isinstance(value, type) or typing.get_origin(value) is not None


def _public_members(obj: Any) -> list[str]:
    """Public data member names of an object in declaration order."""
    cls = type(obj)

    if dataclasses.is_dataclass(obj):
        names = [f.name for f in dataclasses.fields(obj)]
    elif _is_namedtuple(obj):
        names = list(cls._fields)
    else:
        names = list(getattr(obj, "__dict__", None) or ())
        for base in reversed(cls.__mro__):
            slots = vars(base).get("__slots__", ())
            names.extend((slots,) if isinstance(slots, str) else slots)

    for base in reversed(cls.__mro__):
        for attr_name, attr in vars(base).items():
            if isinstance(attr, (property, cached_property)):
                names.append(attr_name)

    # dict.fromkeys() keeps the first occurrence of every name
    return [name for name in dict.fromkeys(names) if not name.startswith("_")]


def _safe_repr(obj) -> str:
    """
    Defensive repr() call - handle broken __repr__ methods gracefully
    """
    try:
        repr_ = repr(obj)
    except Exception as e:
        repr_ = f"<{type(obj).__name__} object (repr failed: {type(e).__name__})>"
    return repr_


# Built-in Formatters --------------------------------------------------------------------------------------------------

def _format_bytes(value: bytes | bytearray, context: FormattingContext) -> str:
    return _fmt_truncate(repr(value), context.options.max_repr)


def _format_collection(value: abc.Collection, context: FormattingContext) -> str:
    opening, closing = _fmt_brackets(value)
    items, more = _fmt_head(value, context.options.max_items)
    parts = [context.format_child(item) for item in items]
    if more:
        parts.append(_fmt_more(len(value) - len(items)))
    if isinstance(value, tuple) and len(parts) == 1:
        return f"({parts[0]},)"
    return _fmt_join(opening, parts, closing, context)


def _format_datetime(value: dt.date | dt.time, context: FormattingContext) -> str:
    """Render dates and times without the components that carry no information."""
    if isinstance(value, dt.datetime):
        parts = [value.date().isoformat()]
        if value.time() != dt.time():
            parts.append(_fmt_time(value.time()))
        offset = value.utcoffset()
    elif isinstance(value, dt.date):
        parts = [value.isoformat()]
        offset = None
    else:
        parts = [_fmt_time(value)]
        offset = value.utcoffset()

    if offset is not None:
        parts.append(_fmt_offset(offset))
    return "<" + " ".join(parts) + ">"


def _format_enum(value: Enum, context: FormattingContext) -> str:
    name = value.name
    if name is None:
        return _safe_repr(value)
    return f"{context.type_name(value)}.{name}"


def _format_exception(value: BaseException, context: FormattingContext) -> str:
    """Render an exception and its chain of causes, outermost first."""
    parts = []
    seen: set[int] = set()
    exc: BaseException | None = value
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        name = context.type_name(exc)
        try:
            message = str(exc)
        except Exception:
            message = ""
        parts.append(f'{name} with message "{message}"' if message else name)

        if exc.__cause__ is not None:
            exc = exc.__cause__
        elif not exc.__suppress_context__:
            exc = exc.__context__
        else:
            exc = None
    return " ---> ".join(parts)


def _format_mapping(value: abc.Mapping, context: FormattingContext) -> str:
    if len(value) == 0:
        return EMPTY_MAPPING_TEXT
    items, more = _fmt_head(value.items(), context.options.max_items)
    parts = [f"{context.format_child(k)}: {context.format_child(v)}" for k, v in items]
    if more:
        parts.append(_fmt_more(len(value) - len(items)))
    return _fmt_join("{", parts, "}", context)


def _format_number(value: Number, context: FormattingContext) -> str:
    return repr(value)


def _format_object(value: Any, context: FormattingContext) -> str:
    """
    Render an object as 'TypeName { a = 1, b = "x" }'.

    Each member is read and rendered separately: a getter that raises is reported in place
    of its value and the remaining members are still rendered.
    """
    name = context.type_name(value)
    parts = []
    for member in _public_members(value):
        try:
            member_value = getattr(value, member)
        except Exception as exc:
            rendered = f"Property '{member}' threw an exception: {_fmt_exception_summary(exc)}"
        else:
            rendered = context.format_child(member_value)
        parts.append(f"{member} = {rendered}")

    if not parts:
        return f"{name} {{ }}"
    if context.options.use_line_breaks:
        body = ",\n".join(textwrap.indent(part, _INDENT) for part in parts)
        return f"{name}\n{{\n{body}\n}}"
    return f"{name} {{ {', '.join(parts)} }}"


def _format_override(value: Any, context: FormattingContext) -> str:
    """Use the object's own string conversion, falling back to the object dump if it raises."""
    try:
        return str(value)
    except Exception:
        return _format_object(value, context)


def _format_string(value: str, context: FormattingContext) -> str:
    return f'"{value}"'


def _format_type(value: Any, context: FormattingContext) -> str:
    return type_name(value, fully_qualified=context.options.fully_qualified)


def _format_str_of(value: Any, context: FormattingContext) -> str:
    return str(value)


def _plain(formatter: Callable[[Any], str]) -> Callable[[Any, FormattingContext], str]:
    """Adapt a context-free formatter to the built-in (value, context) signature."""

    def _formatter(value: Any, context: FormattingContext) -> str:
        return formatter(value)

    return _formatter


BUILTIN_FORMATTERS: tuple[BuiltinFormatter, ...] = (
    # Enum comes first: IntEnum and StrEnum members are also numbers and strings
    BuiltinFormatter("enum", lambda v: isinstance(v, Enum), _format_enum),
    BuiltinFormatter("string", lambda v: isinstance(v, str), _format_string),
    BuiltinFormatter("number", lambda v: isinstance(v, Number), _format_number),
    BuiltinFormatter("bytes", lambda v: isinstance(v, (bytes, bytearray)), _format_bytes),
    BuiltinFormatter("uuid", lambda v: isinstance(v, uuid.UUID), _format_str_of),
    BuiltinFormatter("datetime", lambda v: isinstance(v, (dt.date, dt.time)), _format_datetime),
    BuiltinFormatter("timedelta", lambda v: isinstance(v, dt.timedelta), _format_str_of),
    BuiltinFormatter("type", _is_type, _format_type),
    BuiltinFormatter("xml-attribute", is_xml_attribute, _plain(format_xml_attribute)),
    BuiltinFormatter("xml-element", is_xml_element, _plain(format_xml_element)),
    BuiltinFormatter("xml-document", is_xml_document, _plain(format_xml_document)),
    BuiltinFormatter("exception", lambda v: isinstance(v, BaseException), _format_exception),
    BuiltinFormatter("mapping", lambda v: isinstance(v, abc.Mapping), _format_mapping),
    BuiltinFormatter("namedtuple", _is_namedtuple, _format_object),
    BuiltinFormatter("collection", _is_collection, _format_collection),
    BuiltinFormatter("override", _has_own_string, _format_override),
    BuiltinFormatter("object", lambda v: True, _format_object),
)
