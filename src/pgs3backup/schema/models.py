"""Pydantic models for catalog metadata."""

from pydantic import BaseModel, ConfigDict


def quote_ident(name: str) -> str:
    """Quote a SQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


class TableRef(BaseModel):
    """A base table discovered in the catalog."""

    model_config = ConfigDict(frozen=True)

    schema_name: str
    table_name: str

    @property
    def qualified_name(self) -> str:
        """``"schema"."table"`` for use in SQL text."""
        return f"{quote_ident(self.schema_name)}.{quote_ident(self.table_name)}"

    @property
    def data_entry_name(self) -> str:
        """Archive entry name of this table's data document."""
        return f"data/{self.schema_name}.{self.table_name}.csv"

    def sort_key(self) -> tuple[bytes, bytes]:
        """Case-sensitive byte-order key: schema first, then table."""
        return (self.schema_name.encode("utf-8"), self.table_name.encode("utf-8"))

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.table_name}"


class ColumnDescriptor(BaseModel):
    """Schema for a table column, as read from ``information_schema``."""

    model_config = ConfigDict(frozen=True)

    name: str
    declared_type: str
    nullable: bool = True
    default_expression: str | None = None

    def render(self) -> str:
        """Column definition: ``"<name>" <type>[ DEFAULT <expr>][ NOT NULL]``."""
        part = f"{quote_ident(self.name)} {self.declared_type}"
        if self.default_expression:
            part += f" DEFAULT {self.default_expression}"
        if not self.nullable:
            part += " NOT NULL"
        return part
