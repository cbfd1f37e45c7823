"""
FluentCore utilities shared across the package.

Contains naming and namespace helpers used by both the formatters and the selectors,
kept here to avoid circular imports.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import typing
from typing import Any


# Methods --------------------------------------------------------------------------------------------------------------


def class_name(
    obj: Any,
    fully_qualified: bool = False,
    fully_qualified_builtins: bool = False,
) -> str:
    """
    Get the class name of an object or a class.

    Returns class name whether given an instance or the class itself. Nested classes keep
    their qualified name, so `Outer.Inner` is returned rather than just `Inner`.

    Args:
        obj: An object or a class.
        fully_qualified: If true, prefixes user classes with their module path.
        fully_qualified_builtins: If true, prefixes builtin classes with 'builtins'.

    Returns:
        str: The class name.

    Examples:
        >>> class_name(10)
        'int'
        >>> class_name(10, fully_qualified_builtins=True)
        'builtins.int'
        >>> class Outer:
        ...     class Inner: ...
        >>> class_name(Outer.Inner())
        'Outer.Inner'
    """
    cls = obj if isinstance(obj, type) else type(obj)
    name = getattr(cls, "__qualname__", cls.__name__)
    module = getattr(cls, "__module__", None)

    if module == "builtins":
        return f"builtins.{name}" if fully_qualified_builtins else name
    if fully_qualified and module:
        return f"{module}.{name}"
    return name


def type_name(tp: Any, fully_qualified: bool = False) -> str:
    """
    Display name of a type or a typing construct.

    Plain classes are delegated to class_name(); parameterized generics and other
    typing constructs such as `list[int]` or `int | None` keep their own notation.

    Examples:
        >>> type_name(int)
        'int'
        >>> type_name(list[int])
        'list[int]'
        >>> type_name(type(None))
        'None'
    """
    if tp is type(None) or tp is None:
        return "None"
    if tp is typing.Any:
        return "Any"
    if isinstance(tp, type) and typing.get_origin(tp) is None:
        return class_name(tp, fully_qualified=fully_qualified)
    text = str(tp)
    return text.removeprefix("typing.")


def type_label(obj: Any) -> str:
    """Short '<type>' label of an object for error messages."""
    return f"<{class_name(obj)}>"


def namespace_of(obj: Any) -> str:
    """Namespace of a class or an instance, that is the module it was defined in."""
    cls = obj if isinstance(obj, type) else type(obj)
    return getattr(cls, "__module__", None) or ""


def is_under_namespace(namespace: str, parent: str | None) -> bool:
    """
    Check whether namespace equals parent or is nested below it.

    A None or empty parent is the global namespace and contains everything.

    Examples:
        >>> is_under_namespace("pkg.models.user", "pkg.models")
        True
        >>> is_under_namespace("pkg.modelsx", "pkg.models")
        False
    """
    if not parent:
        return True
    return namespace == parent or namespace.startswith(parent + ".")
