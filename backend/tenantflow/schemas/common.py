from __future__ import annotations

from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Wire format is camelCase; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PatchModel(CamelModel):
    """Partial update: an absent field means "leave unchanged".

    Fields listed in ``NULLABLE`` may be sent as an explicit ``null`` to clear
    them; ``null`` on any other field is rejected.
    """

    NULLABLE: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_on_required(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.NULLABLE:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: T | None = None


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    limit: int


def ok(message: str, data: Any = None) -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}
