from .alt_text import alt_text
from .data_loader import LoadedTable, TableLoader, load_table
from .spec_deriver import derive_spec
from .spec_validator import validate_spec

__all__ = [
    "alt_text",
    "LoadedTable",
    "TableLoader",
    "load_table",
    "derive_spec",
    "validate_spec",
]
