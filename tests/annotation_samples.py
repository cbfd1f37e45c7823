"""
Sample types with postponed annotations for reflection tests.
"""

from __future__ import annotations

# Standard library -----------------------------------------------------------------------------------------------------
from typing import Annotated, ClassVar

# Local ----------------------------------------------------------------------------------------------------------------
from fluentcore.reflection import Marker


# Classes --------------------------------------------------------------------------------------------------------------

class Key(Marker):
    pass


class Account:
    registry: ClassVar[dict] = {}
    name: Annotated[str, Key()]
    owner: Undefined  # noqa: F821


class SubAccount(Account):
    name: str
