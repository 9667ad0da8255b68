"""Abstract base class for work-item field services."""

from abc import ABC, abstractmethod
from typing import Any


class FieldService(ABC):
    @abstractmethod
    def get_field(self, name: str) -> Any: ...

    @abstractmethod
    def set_field(self, name: str, value: Any) -> None: ...

    @abstractmethod
    def get_all_fields(self) -> dict[str, Any]: ...
