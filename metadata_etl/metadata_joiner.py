""" Clinical/biospecimen metadata joiner """
import logging

import petl

from metadata_errors import InvalidIdentifierError, MissingColumnError


_logger = logging.getLogger(__name__)

# biospecimen submitter ids are patient barcodes followed by a 4 character sample suffix e.g. '-01A'
SAMPLE_SUFFIX_LENGTH: int = 4


def derive_patient_key(submitter_id: str) -> str:
    """ Derive patient key (barcode) from specified biospecimen submitter id by removing sample suffix """
    if not isinstance(submitter_id, str) or len(submitter_id) < SAMPLE_SUFFIX_LENGTH:
        raise InvalidIdentifierError(submitter_id)
    return submitter_id[:-SAMPLE_SUFFIX_LENGTH]


def assert_has_column(tbl: any, column: str) -> None:
    """ Raise MissingColumnError if specified column is not in table header """
    header: tuple[str, ...] = petl.header(tbl)
    if column not in header:
        raise MissingColumnError(column, header)


def add_patient_key(tbl: any, key_column: str, source_column: str = 'submitter_id') -> any:
    """ Append column containing patient key derived from specified (submitter id) source column """
    assert_has_column(tbl, source_column)
    return petl.addfield(tbl, key_column, lambda rec: derive_patient_key(rec[source_column]))


def prefix_columns(tbl: any, prefix: str) -> any:
    """ Prefix all column names in table with specified namespace e.g. 'clinical.' """
    return petl.setheader(tbl, [f'{prefix}{h}' for h in petl.header(tbl)])


def join_metadata(clinical: any, biospecimen: any, clinical_key_column: str, biospecimen_key_column: str) -> any:
    """
    Inner join clinical and biospecimen tables on specified key columns. Each clinical row is paired with
    every biospecimen row having the same key; rows without a match on the other side are dropped, as are
    rows with a null key. Output columns are the clinical columns followed by the biospecimen columns
    other than the biospecimen key column, rows follow clinical order then biospecimen order.
    """
    assert_has_column(clinical, clinical_key_column)
    assert_has_column(biospecimen, biospecimen_key_column)
    return petl.hashjoin(
        petl.selectnotnone(clinical, clinical_key_column),
        petl.selectnotnone(biospecimen, biospecimen_key_column),
        lkey=clinical_key_column,
        rkey=biospecimen_key_column
    )
