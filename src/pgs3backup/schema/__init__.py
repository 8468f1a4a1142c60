"""Catalog introspection: table discovery and CREATE TABLE rendering.

Usage:
    from pgs3backup.schema import SchemaIntrospector, TableRef, ColumnDescriptor
"""

from pgs3backup.schema.introspector import SchemaIntrospector, render_create_table
from pgs3backup.schema.models import ColumnDescriptor, TableRef

__all__ = [
    "SchemaIntrospector",
    "render_create_table",
    "ColumnDescriptor",
    "TableRef",
]
