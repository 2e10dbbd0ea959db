""" Nested Table Flattener """
from collections.abc import Iterator, Mapping
import logging

import petl

from metadata_errors import MissingColumnError, NestedValueError


_logger = logging.getLogger(__name__)

# biospecimen containment hierarchy, coarsest first; each step is exposed by the one before it
UNWRAP_STEPS: tuple[str, ...] = ('portions', 'portions.analytes', 'portions.analytes.aliquots')


def get_nested_rows(nested_column: str, value: any) -> list[Mapping[str, any]]:
    """
    Get rows of the embedded table held by a nested column cell. None is an empty table and a single
    mapping is a one-row table; anything other than a list/tuple of mappings is not a table
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(v, Mapping) for v in value):
        return list(value)
    raise NestedValueError(nested_column, value)


def get_nested_header(tbl: any, nested_column: str) -> list[str]:
    """ Get child column names for specified nested column in order of first appearance across all rows """
    col_index: int = petl.header(tbl).index(nested_column)
    nested_header: dict[str, None] = {}
    num_parents: int = 0
    num_pruned: int = 0
    num_children: int = 0
    row: tuple[any, ...]
    for row in petl.data(tbl):
        num_parents += 1
        child_rows: list[Mapping[str, any]] = get_nested_rows(nested_column, row[col_index])
        if not child_rows:
            num_pruned += 1
        num_children += len(child_rows)
        child_row: Mapping[str, any]
        for child_row in child_rows:
            nested_header.update(dict.fromkeys(child_row))

    _logger.info(
        'Unwrapping "%s": %d parent row(s), %d child row(s), %d column(s)',
        nested_column,
        num_parents,
        num_children,
        len(nested_header)
    )
    if num_pruned:
        _logger.warning('%d row(s) without "%s" records will be dropped', num_pruned, nested_column)
    return list(nested_header)


def flatten_nested_column(tbl: any, nested_column: str) -> any:
    """
    Replace specified nested column with the columns of its embedded tables, emitting one row per
    (parent row, child row) pair. Child columns are renamed '{nested_column}.{child column}' and appended
    after the parent columns; other nested columns are left as-is for later calls. Parent rows with an
    empty embedded table are dropped. Rows keep parent order, then child order within each parent.
    """
    header: tuple[str, ...] = petl.header(tbl)
    if nested_column not in header:
        raise MissingColumnError(nested_column, header)

    col_index: int = header.index(nested_column)
    nested_header: list[str] = get_nested_header(tbl, nested_column)
    parent_indexes: list[int] = [i for i in range(len(header)) if i != col_index]
    prefixed_header: list[str] = [f'{nested_column}.{h}' for h in nested_header]

    collisions: set[str] = set(header).intersection(prefixed_header)
    if collisions:
        _logger.warning('Unwrapped column name(s) already present in table: %s', sorted(collisions))

    def unwrap_row(row: tuple[any, ...]) -> Iterator[list[any]]:
        parent_values: list[any] = [row[i] for i in parent_indexes]
        child_row: Mapping[str, any]
        for child_row in get_nested_rows(nested_column, row[col_index]):
            yield parent_values + [child_row.get(h) for h in nested_header]

    return petl.rowmapmany(
        tbl,
        unwrap_row,
        header=[header[i] for i in parent_indexes] + prefixed_header,
        failonerror=True
    )


def unwrap_nested_columns(tbl: any, unwrap_steps: list[str] | tuple[str, ...] = UNWRAP_STEPS) -> any:
    """
    Flatten specified nested columns in order. Each step must name a column present after the previous
    steps, e.g. 'portions' must be unwrapped before 'portions.analytes'. Remaining steps are skipped once
    no rows are left since the pruned table can't expose the next nested column.
    """
    step: str
    for step in unwrap_steps:
        if not petl.nrows(tbl):
            _logger.warning('No rows left to unwrap, skipping remaining step(s) starting with "%s"', step)
            break
        tbl = flatten_nested_column(tbl, step)
    return tbl
