"""
Sample model types for selector tests.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import abc

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, ClassVar, Generic, NamedTuple, Protocol, TypeVar, runtime_checkable

# Local ----------------------------------------------------------------------------------------------------------------
from fluentcore.reflection import Marker, decorate

T = TypeVar("T")


# Classes --------------------------------------------------------------------------------------------------------------

class Entity(Marker):
    pass


@dataclass(frozen=True)
class Table(Marker):
    name: str


class Audited(Marker):
    inherited = False


class Indexed(Marker):
    pass


@runtime_checkable
class Named(Protocol):
    def display_name(self) -> str: ...


class Exporter(abc.ABC):
    @abc.abstractmethod
    def export(self) -> bytes: ...


class Repository(Generic[T], abc.ABC):
    @abc.abstractmethod
    def get(self, key: int) -> T: ...


@decorate(Entity, Table("users"), Audited)
@dataclass
class User:
    name: str
    email: Annotated[str, Indexed()]
    roles: ClassVar[tuple[str, ...]] = ()

    def display_name(self) -> str:
        return self.name


class Admin(User):
    def display_name(self) -> str:
        return f"admin {self.name}"


@decorate(Table("orders"))
class Order:
    class Line:
        pass

    def total(self) -> int:
        return 0


class UserRepository(Repository[User]):
    def get(self, key: int) -> User:
        return User("ann", "ann@example.com")


class OrderRepository(Repository[Order]):
    def get(self, key: int) -> Order:
        return Order()


class LegacyExporter:
    def export(self) -> bytes:
        return b""


Exporter.register(LegacyExporter)


class Color(Enum):
    RED = 1


class Point(NamedTuple):
    x: int
    y: int
