"""
Demo entity Pydantic models and table mapping
"""

from dataclasses import dataclass
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class DemoEntity(BaseModel):
    """One row of the demo_entity table"""
    id: Optional[int] = None
    data: Optional[str] = None

    def is_new(self) -> bool:
        """An entity without an identifier has never been persisted"""
        return self.id is None


class CreateEntityRequest(BaseModel):
    """Body of POST /demo_entity. The key is required, the value may be null."""
    model_config = ConfigDict(extra="ignore")

    data: Optional[str]

    def to_entity(self) -> DemoEntity:
        return DemoEntity(data=self.data)


@dataclass(frozen=True)
class TableMapping:
    """Explicit field-to-column binding handed to the store client"""
    table: str
    id_field: str
    columns: Dict[str, str]

    @property
    def id_column(self) -> str:
        return self.columns[self.id_field]

    @property
    def value_fields(self) -> list:
        """Fields other than the identifier, in declaration order"""
        return [name for name in self.columns if name != self.id_field]

    def to_row(self, entity: DemoEntity) -> Dict[str, object]:
        values = entity.model_dump()
        return {self.columns[name]: values[name] for name in self.columns}

    def from_row(self, row) -> DemoEntity:
        return DemoEntity(**{name: row[column] for name, column in self.columns.items()})


DEMO_ENTITY_MAPPING = TableMapping(
    table="demo_entity",
    id_field="id",
    columns={"id": "id", "data": "data"},
)
