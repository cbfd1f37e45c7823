#
# FluentCore - Registry Tests
#

# Standard library -----------------------------------------------------------------------------------------------------
import warnings

# Third Party ----------------------------------------------------------------------------------------------------------
import pytest
from frozendict import frozendict

# Local ----------------------------------------------------------------------------------------------------------------
from fluentcore.formatters import BUILTIN_FORMATTERS, to_display_string
from fluentcore.registry import BuiltinFormatter, FormatterRegistry, is_value_formatter, value_formatter

import formatter_samples
from formatter_samples import Celsius, Money, Temperature, format_money, format_money_unmarked


# Tests ----------------------------------------------------------------------------------------------------------------

class DuplicateFormatters:
    @value_formatter
    @staticmethod
    def money(value: Money) -> str:
        return f"{value.currency}{value.amount}"


class ClassMethodFormatters:
    prefix = "cls"

    @classmethod
    @value_formatter
    def money(cls, value: Money) -> str:
        return f"{cls.prefix} {value.amount}"


class TwoParameterFormatters:
    @staticmethod
    @value_formatter
    def money(value: Money, extra: int) -> str:
        return ""


class UnannotatedFormatters:
    @staticmethod
    @value_formatter
    def money(value) -> str:
        return ""


class TestFormatterRegistry:
    def test_register_chaining(self):
        """Return self from registration methods."""
        registry = FormatterRegistry()
        assert registry.register_formatter(Money, str) is registry
        assert registry.remove_formatter(Money) is registry
        assert dict(registry.custom_formatters) == {}

    def test_register_override(self):
        """Replace the formatter of an already registered type."""
        registry = FormatterRegistry().register_formatter(Money, lambda v: "first")
        registry.register_formatter(Money, lambda v: "second")
        assert registry.get_custom_formatter(Money(1, "EUR"))(Money(1, "EUR")) == "second"

    def test_remove_missing(self):
        """Ignore removal of unregistered types."""
        registry = FormatterRegistry().remove_formatter(Money)
        assert registry.get_custom_formatter(Money(1, "EUR")) is None

    @pytest.mark.parametrize(
        "typ, formatter",
        [
            pytest.param("Money", str, id="str_type"),
            pytest.param(list[int], str, id="generic_alias"),
            pytest.param(Money, "not callable", id="not_callable"),
        ],
    )
    def test_register_invalid(self, typ, formatter):
        """Reject non-class types and non-callable formatters."""
        with pytest.raises(TypeError):
            FormatterRegistry().register_formatter(typ, formatter)

    def test_invalid_builtins(self):
        """Reject built-in entries of a wrong type."""
        with pytest.raises(TypeError, match=r"(?i).*BuiltinFormatter.*"):
            FormatterRegistry([lambda v: True])

    def test_freeze(self):
        """Reject any mutation after freezing."""
        registry = FormatterRegistry().register_formatter(Money, str).freeze()
        assert registry.is_frozen
        assert isinstance(registry.custom_formatters, frozendict)
        with pytest.raises(RuntimeError, match=r"(?i).*frozen.*"):
            registry.register_formatter(Temperature, str)
        with pytest.raises(RuntimeError, match=r"(?i).*frozen.*"):
            registry.remove_formatter(Money)
        with pytest.raises(RuntimeError, match=r"(?i).*frozen.*"):
            registry.discover(formatter_samples)

    def test_custom_formatters_read_only(self):
        """Expose custom formatters without allowing writes."""
        registry = FormatterRegistry().register_formatter(Money, str)
        with pytest.raises(TypeError):
            registry.custom_formatters[Temperature] = str

    def test_mro_lookup(self):
        """Resolve the formatter of the nearest registered ancestor."""
        registry = FormatterRegistry().register_formatter(Temperature, lambda v: "temperature")
        assert registry.get_custom_formatter(Celsius(1.0))(Celsius(1.0)) == "temperature"
        registry.register_formatter(Celsius, lambda v: "celsius")
        assert registry.get_custom_formatter(Celsius(1.0))(Celsius(1.0)) == "celsius"
        assert registry.get_custom_formatter(Money(1, "EUR")) is None

    def test_builtin_lookup_order(self):
        """Pick the first built-in entry accepting the value."""
        first = BuiltinFormatter("first", lambda v: isinstance(v, int), lambda v, ctx: "first")
        second = BuiltinFormatter("second", lambda v: True, lambda v, ctx: "second")
        registry = FormatterRegistry([first, second])
        assert registry.get_builtin_formatter(1) is first
        assert registry.get_builtin_formatter("a") is second
        assert FormatterRegistry().get_builtin_formatter(1) is None

    def test_builtin_names(self):
        """Order built-in entries from the most to the least specific."""
        names = [entry.name for entry in BUILTIN_FORMATTERS]
        assert names[0] == "enum"
        assert names[-1] == "object"
        assert names.index("exception") < names.index("mapping") < names.index("collection") < names.index("override")

    def test_without_builtins(self):
        """Fall back to repr() when no built-in entry is registered."""
        assert to_display_string([1], registry=FormatterRegistry().freeze()) == "[1]"


class TestDiscover:
    def test_module(self):
        """Register marked functions and marked static methods of a module."""
        registry = FormatterRegistry().discover(formatter_samples)
        assert registry.custom_formatters[Money] is format_money
        assert registry.custom_formatters[Temperature](Temperature(20.0)) == "20.0 degrees"
        assert format_money_unmarked not in registry.custom_formatters.values()

    def test_module_name(self):
        """Import sources given by name."""
        registry = FormatterRegistry().discover("formatter_samples")
        assert set(registry.custom_formatters) == {Money, Temperature}

    def test_classmethod(self):
        """Bind marked class methods to their class."""
        registry = FormatterRegistry().discover(ClassMethodFormatters)
        assert registry.custom_formatters[Money](Money(3, "EUR")) == "cls 3"

    def test_duplicate_last_wins(self):
        """Keep the later formatter and warn about the replacement."""
        with pytest.warns(RuntimeWarning, match=r"(?i).*replaces.*"):
            registry = FormatterRegistry().discover(formatter_samples, DuplicateFormatters)
        assert registry.custom_formatters[Money](Money(3, "EUR")) == "EUR3"

    def test_rediscovery_is_silent(self):
        """Do not warn when the same function is discovered again."""
        registry = FormatterRegistry().discover(formatter_samples)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            registry.discover(formatter_samples)

    @pytest.mark.parametrize(
        "source, match",
        [
            pytest.param(TwoParameterFormatters, r"(?i).*exactly one parameter.*", id="two_parameters"),
            pytest.param(UnannotatedFormatters, r"(?i).*annotate.*", id="unannotated"),
        ],
    )
    def test_malformed_raise(self, source, match):
        """Raise TypeError for malformed formatters by default."""
        with pytest.raises(TypeError, match=match):
            FormatterRegistry().discover(source)

    def test_malformed_warn(self):
        """Warn and continue with on_error='warn'."""
        with pytest.warns(RuntimeWarning, match=r"(?i).*discovery failed.*"):
            registry = FormatterRegistry().discover(TwoParameterFormatters, formatter_samples, on_error="warn")
        assert Money in registry.custom_formatters

    def test_malformed_skip(self):
        """Ignore silently with on_error='skip'."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            registry = FormatterRegistry().discover(UnannotatedFormatters, on_error="skip")
        assert dict(registry.custom_formatters) == {}

    def test_missing_module(self):
        """Propagate import errors by default."""
        with pytest.raises(ImportError):
            FormatterRegistry().discover("no_such_formatters_module")

    @pytest.mark.parametrize(
        "source",
        [
            pytest.param(None, id="none"),
            pytest.param(42, id="int"),
        ],
    )
    def test_invalid_source(self, source):
        """Reject sources that are not modules, module names or classes."""
        with pytest.raises(TypeError):
            FormatterRegistry().discover(source)

    def test_invalid_on_error(self):
        """Reject unknown on_error literals."""
        with pytest.raises(ValueError, match=r"(?i).*on_error.*"):
            FormatterRegistry().discover(formatter_samples, on_error="ignore")


class TestValueFormatter:
    def test_marks_function(self):
        """Mark plain functions only when decorated."""
        assert is_value_formatter(format_money)
        assert not is_value_formatter(format_money_unmarked)

    def test_returns_target(self):
        """Return the decorated object unchanged."""

        def fmt(value: Money) -> str:
            return ""

        assert value_formatter(fmt) is fmt
        assert value_formatter(for_type=Money)(fmt) is fmt

    def test_invalid_for_type(self):
        """Reject non-class for_type values."""
        with pytest.raises(TypeError):
            value_formatter(for_type="Money")

    def test_not_callable(self):
        """Reject non-callable targets."""
        with pytest.raises(TypeError):
            value_formatter(42)
