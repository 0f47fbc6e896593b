from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from salondesk.core.errors import InventoryError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: InventoryError

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Ok[T], Err]


def unwrap(outcome: "Outcome[T]") -> T:
    """Return the data of an ``Ok`` or raise the carried error.

    The API registers a handler for ``InventoryError`` that renders the standard
    error envelope, so routers can unwrap without branching.
    """
    if isinstance(outcome, Ok):
        return outcome.data
    raise outcome.error
