""" Test nested table flattener """
import logging

import petl
import pytest

from metadata_errors import MissingColumnError, NestedValueError
from nested_table_flattener import (
    UNWRAP_STEPS,
    flatten_nested_column,
    get_nested_header,
    get_nested_rows,
    unwrap_nested_columns
)


_logger: logging.Logger = logging.getLogger(__name__)


def get_samples_table() -> any:
    """ Build biospecimen sample table with nested portions """
    return petl.wrap([
        ['submitter_id', 'sample_type', 'portions'],
        [
            'TCGA-AB-0001-01A',
            'Primary Tumor',
            [{'portion_id': 'p1', 'weight': 10}, {'portion_id': 'p2', 'weight': 20}]
        ],
        ['TCGA-AB-0002-01A', 'Primary Tumor', []],
        ['TCGA-AB-0003-11A', 'Solid Tissue Normal', [{'portion_id': 'p3', 'weight': 30}]],
    ])


def get_nested_samples_table() -> any:
    """ Build biospecimen sample table nested three levels deep (portions, analytes, aliquots) """
    return petl.wrap([
        ['submitter_id', 'portions'],
        [
            'TCGA-AB-0001-01A',
            [
                {
                    'portion_id': 'p1',
                    'analytes': [
                        {
                            'analyte_id': 'an1',
                            'aliquots': [{'aliquot_id': 'al1'}, {'aliquot_id': 'al2'}]
                        },
                        {'analyte_id': 'an2', 'aliquots': []}
                    ]
                },
                {
                    'portion_id': 'p2',
                    'analytes': [{'analyte_id': 'an3', 'aliquots': [{'aliquot_id': 'al3'}]}]
                }
            ]
        ],
        ['TCGA-AB-0002-01A', [{'portion_id': 'p4', 'analytes': []}]],
    ])


def setup_module() -> None:
    """ module-wide test setup """
    _logger.info(__name__)


def test_get_nested_rows() -> None:
    """ test_get_nested_rows """
    _logger.info(test_get_nested_rows.__name__)
    values_expected_rows: list[tuple[any, list[dict[str, any]]]] = [
        (None, []),
        ([], []),
        ({'portion_id': 'p1'}, [{'portion_id': 'p1'}]),
        ([{'portion_id': 'p1'}, {'portion_id': 'p2'}], [{'portion_id': 'p1'}, {'portion_id': 'p2'}]),
        (({'portion_id': 'p1'},), [{'portion_id': 'p1'}]),
    ]
    value: any
    expected_rows: list[dict[str, any]]
    for value, expected_rows in values_expected_rows:
        assert get_nested_rows('portions', value) == expected_rows

    invalid_value: any
    for invalid_value in ('p1', 42, ['p1', 'p2'], [{'portion_id': 'p1'}, None]):
        with pytest.raises(NestedValueError) as exc_info:
            get_nested_rows('portions', invalid_value)
        assert exc_info.value.column == 'portions'


def test_get_nested_header() -> None:
    """ test_get_nested_header """
    _logger.info(test_get_nested_header.__name__)
    tbl: any = petl.wrap([
        ['submitter_id', 'portions'],
        ['s1', [{'portion_id': 'p1'}]],
        ['s2', [{'weight': 5, 'portion_id': 'p2'}, {'is_ffpe': False}]],
    ])
    assert get_nested_header(tbl, 'portions') == ['portion_id', 'weight', 'is_ffpe']


def test_flatten_nested_column() -> None:
    """ test_flatten_nested_column """
    _logger.info(test_flatten_nested_column.__name__)
    tbl: any = flatten_nested_column(get_samples_table(), 'portions')
    assert petl.header(tbl) == ('submitter_id', 'sample_type', 'portions.portion_id', 'portions.weight')
    assert [tuple(r) for r in petl.data(tbl)] == [
        ('TCGA-AB-0001-01A', 'Primary Tumor', 'p1', 10),
        ('TCGA-AB-0001-01A', 'Primary Tumor', 'p2', 20),
        ('TCGA-AB-0003-11A', 'Solid Tissue Normal', 'p3', 30),
    ]


def test_flatten_nested_column_row_count() -> None:
    """ test_flatten_nested_column_row_count """
    _logger.info(test_flatten_nested_column_row_count.__name__)
    source_tbl: any = get_samples_table()
    expected_count: int = sum(len(get_nested_rows('portions', p)) for p in petl.values(source_tbl, 'portions'))
    tbl: any = flatten_nested_column(source_tbl, 'portions')
    assert petl.nrows(tbl) == expected_count == 3
    assert 'TCGA-AB-0002-01A' not in set(petl.values(tbl, 'submitter_id'))


def test_flatten_nested_column_no_cross_contamination() -> None:
    """ test_flatten_nested_column_no_cross_contamination """
    _logger.info(test_flatten_nested_column_no_cross_contamination.__name__)
    source_tbl: any = get_samples_table()
    portion_ids_by_sample: dict[str, set[str]] = {
        rec['submitter_id']: {p['portion_id'] for p in rec['portions']} for rec in petl.dicts(source_tbl)
    }
    rec: dict[str, any]
    for rec in petl.dicts(flatten_nested_column(source_tbl, 'portions')):
        assert rec['portions.portion_id'] in portion_ids_by_sample[rec['submitter_id']]


def test_flatten_nested_column_single_column() -> None:
    """ test_flatten_nested_column_single_column """
    _logger.info(test_flatten_nested_column_single_column.__name__)
    tbl: any = petl.wrap([
        ['submitter_id', 'portions'],
        ['s1', [{'portion_id': 'p1'}, {'portion_id': 'p2'}]],
    ])
    tbl = flatten_nested_column(tbl, 'portions')
    assert petl.header(tbl) == ('submitter_id', 'portions.portion_id')
    assert list(petl.values(tbl, 'portions.portion_id')) == ['p1', 'p2']


def test_flatten_nested_column_missing_child_values() -> None:
    """ test_flatten_nested_column_missing_child_values """
    _logger.info(test_flatten_nested_column_missing_child_values.__name__)
    tbl: any = petl.wrap([
        ['submitter_id', 'portions'],
        ['s1', [{'portion_id': 'p1', 'weight': 10}]],
        ['s2', {'portion_id': 'p2'}],
        ['s3', None],
    ])
    tbl = flatten_nested_column(tbl, 'portions')
    assert [tuple(r) for r in petl.data(tbl)] == [('s1', 'p1', 10), ('s2', 'p2', None)]


def test_flatten_nested_column_keeps_other_nested_columns() -> None:
    """ test_flatten_nested_column_keeps_other_nested_columns """
    _logger.info(test_flatten_nested_column_keeps_other_nested_columns.__name__)
    annotations: list[dict[str, any]] = [{'annotation_id': 'a1'}]
    tbl: any = petl.wrap([
        ['submitter_id', 'portions', 'annotations'],
        ['s1', [{'portion_id': 'p1'}, {'portion_id': 'p2'}], annotations],
    ])
    tbl = flatten_nested_column(tbl, 'portions')
    assert petl.header(tbl) == ('submitter_id', 'annotations', 'portions.portion_id')
    assert list(petl.values(tbl, 'annotations')) == [annotations, annotations]


def test_flatten_nested_column_missing_column() -> None:
    """ test_flatten_nested_column_missing_column """
    _logger.info(test_flatten_nested_column_missing_column.__name__)
    with pytest.raises(MissingColumnError) as exc_info:
        flatten_nested_column(get_samples_table(), 'portions.analytes')
    assert exc_info.value.column == 'portions.analytes'


def test_flatten_nested_column_invalid_value() -> None:
    """ test_flatten_nested_column_invalid_value """
    _logger.info(test_flatten_nested_column_invalid_value.__name__)
    tbl: any = petl.wrap([
        ['submitter_id', 'sample_type'],
        ['s1', 'Primary Tumor'],
    ])
    with pytest.raises(NestedValueError):
        flatten_nested_column(tbl, 'sample_type')


def test_flatten_nested_column_logs_dropped_rows(caplog: pytest.LogCaptureFixture) -> None:
    """ test_flatten_nested_column_logs_dropped_rows """
    _logger.info(test_flatten_nested_column_logs_dropped_rows.__name__)
    with caplog.at_level(logging.WARNING):
        flatten_nested_column(get_samples_table(), 'portions')
    assert '1 row(s) without "portions" records will be dropped' in caplog.text


def test_unwrap_nested_columns() -> None:
    """ test_unwrap_nested_columns """
    _logger.info(test_unwrap_nested_columns.__name__)
    tbl: any = unwrap_nested_columns(get_nested_samples_table(), UNWRAP_STEPS)
    assert petl.header(tbl) == (
        'submitter_id',
        'portions.portion_id',
        'portions.analytes.analyte_id',
        'portions.analytes.aliquots.aliquot_id'
    )
    assert [tuple(r) for r in petl.data(tbl)] == [
        ('TCGA-AB-0001-01A', 'p1', 'an1', 'al1'),
        ('TCGA-AB-0001-01A', 'p1', 'an1', 'al2'),
        ('TCGA-AB-0001-01A', 'p2', 'an3', 'al3'),
    ]


def test_unwrap_nested_columns_out_of_order() -> None:
    """ test_unwrap_nested_columns_out_of_order """
    _logger.info(test_unwrap_nested_columns_out_of_order.__name__)
    unwrap_steps: list[str] = ['portions.analytes', 'portions', 'portions.analytes.aliquots']
    with pytest.raises(MissingColumnError) as exc_info:
        unwrap_nested_columns(get_nested_samples_table(), unwrap_steps)
    assert exc_info.value.column == 'portions.analytes'


def test_unwrap_nested_columns_all_pruned() -> None:
    """ test_unwrap_nested_columns_all_pruned """
    _logger.info(test_unwrap_nested_columns_all_pruned.__name__)
    tbl: any = petl.wrap([
        ['submitter_id', 'portions'],
        ['TCGA-AB-0001-01A', []],
        ['TCGA-AB-0002-01A', None],
    ])
    tbl = unwrap_nested_columns(tbl)
    assert petl.nrows(tbl) == 0
    assert 'submitter_id' in petl.header(tbl)
