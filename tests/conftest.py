#
# Pytest Fixtures
#

# Third-party ----------------------------------------------------------------------------------------------------------
import pytest

# Local ----------------------------------------------------------------------------------------------------------------
from fluentcore.formatters import BUILTIN_FORMATTERS, configure
from fluentcore.registry import FormatterRegistry


# Fixtures -------------------------------------------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def default_formatting():
    """Restore default module formatting options around every test."""
    configure(preset="default")
    yield
    configure(preset="default")


@pytest.fixture
def registry_builder():
    """Factory of mutable registries preloaded with the built-in formatters."""

    def _build() -> FormatterRegistry:
        return FormatterRegistry(BUILTIN_FORMATTERS)

    return _build
