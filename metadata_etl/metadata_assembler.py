""" TCGA Metadata Assembler """
import json
import logging
import logging.config
import pathlib
import sys

import dotenv
import jsonschema
from jsonschema import ValidationError
import petl

from metadata_errors import UnknownColumnError
from metadata_joiner import add_patient_key, join_metadata, prefix_columns
from metadata_record_type import MetadataRecordType
from nested_table_flattener import UNWRAP_STEPS, unwrap_nested_columns
from tcga_file_manager import TcgaFileManager


_logger = logging.getLogger(__name__)

SUBMITTER_ID_COLUMN: str = 'submitter_id'
PATIENT_BARCODE_COLUMN: str = 'bcr_patient_barcode'
PATIENT_KEY_COLUMN: str = f'{MetadataRecordType.CLINICAL.column_prefix}{PATIENT_BARCODE_COLUMN}'

COLLECTION_CONFIGURATIONS_SCHEMA: dict[str, any] = {
    '$schema': 'https://json-schema.org/draft/2020-12/schema',
    'type': 'array',
    'minItems': 1,
    'items': {
        'type': 'object',
        'properties': {
            'collection': {'type': 'string', 'minLength': 1},
            'active': {'type': 'boolean'},
            **{t.source_file_setting: {'type': 'string', 'minLength': 1} for t in MetadataRecordType}
        },
        'required': ['collection', *[t.source_file_setting for t in MetadataRecordType]]
    }
}


def get_records(json_data: any) -> list[dict[str, any]]:
    """ Get source records from list of records or GDC API response ({"data": {"hits": [...]}}) """
    records: any = json_data
    if isinstance(json_data, dict):
        data: any = json_data.get('data')
        records = data.get('hits') if isinstance(data, dict) else None
    if not isinstance(records, list):
        raise RuntimeError('Source data must be list of records or object with "data.hits" list of records')
    if not all(isinstance(r, dict) for r in records):
        raise RuntimeError('Source data records must be objects')
    return records


def get_table_from_records(records: list[dict[str, any]]) -> any:
    """ Build petl table from records with header containing all record keys in order of first appearance """
    header: dict[str, None] = {}
    record: dict[str, any]
    for record in records:
        header.update(dict.fromkeys(record))
    return petl.fromdicts(records, header=list(header))


def ensure_patient_barcode(clinical: any) -> any:
    """ Add patient barcode to clinical table if not present, copied from (patient) submitter id """
    header: tuple[str, ...] = petl.header(clinical)
    if PATIENT_BARCODE_COLUMN in header or SUBMITTER_ID_COLUMN not in header:
        return clinical
    return petl.addfield(clinical, PATIENT_BARCODE_COLUMN, lambda rec: rec[SUBMITTER_ID_COLUMN])


def assemble_metadata(
    clinical: any,
    biospecimen: any,
    unwrap_steps: list[str] | tuple[str, ...] = UNWRAP_STEPS
) -> any:
    """
    Flatten nested biospecimen table and join with clinical table on patient barcode derived from the
    biospecimen submitter id. Clinical columns are prefixed with 'clinical.'; biospecimen rows without
    unwrapped children and rows without a match on the other side are dropped. Returns materialized table.
    """
    clinical = prefix_columns(ensure_patient_barcode(clinical), MetadataRecordType.CLINICAL.column_prefix)
    biospecimen = unwrap_nested_columns(biospecimen, unwrap_steps)

    if not petl.nrows(clinical) or not petl.nrows(biospecimen):
        _logger.warning(
            'No metadata to join: %d clinical row(s), %d unwrapped biospecimen row(s)',
            petl.nrows(clinical),
            petl.nrows(biospecimen)
        )
        return petl.wrap([list(petl.header(clinical)) + list(petl.header(biospecimen))])

    biospecimen = add_patient_key(biospecimen, PATIENT_KEY_COLUMN, SUBMITTER_ID_COLUMN)
    unified: any = petl.wrap(list(join_metadata(clinical, biospecimen, PATIENT_KEY_COLUMN, PATIENT_KEY_COLUMN)))
    _logger.info(
        '%d unified row(s) joined from %d clinical and %d biospecimen row(s)',
        petl.nrows(unified),
        petl.nrows(clinical),
        petl.nrows(biospecimen)
    )
    return unified


def select_columns(tbl: any, columns: list[str]) -> any:
    """ Project table to specified ordered list of columns, all columns retained if none specified """
    if not columns:
        return tbl
    header: tuple[str, ...] = petl.header(tbl)
    unknown_columns: list[str] = [c for c in columns if c not in header]
    if unknown_columns:
        raise UnknownColumnError(unknown_columns)
    return petl.cut(tbl, *columns)


class MetadataAssembler:
    """
    Assemble unified (flattened and joined) clinical/biospecimen metadata for collections specified in
    config and save to output file. Config is expected to be loaded from .env file e.g.:

    config: dict[str, str] = dotenv.dotenv_values('/path/to/.env')
    metadata_assembler: MetadataAssembler = MetadataAssembler(config)
    metadata_assembler.save_metadata()
    """
    TRUE_STRINGS: tuple[str, ...] = (str(True).lower(), 't', 'yes', 'y', '1')
    OUTPUT_FILE_TYPES: tuple[str, ...] = ('.csv', '.tsv', '.xlsx')

    def __init__(self, config: dict[str, str]) -> None:
        self._config: dict[str, str] = config
        self._file_manager: TcgaFileManager = TcgaFileManager()
        self._collection_configurations: list[dict[str, any]] = json.loads(
            config.get('COLLECTION_CONFIGURATIONS') or '[]'
        )
        self._unwrap_steps: list[str] = json.loads(config.get('UNWRAP_STEPS') or json.dumps(UNWRAP_STEPS))
        self._output_columns: list[str] = json.loads(config.get('OUTPUT_COLUMNS') or '[]')
        self._output_file_path: str = config.get('OUTPUT_FILE_PATH') or './tcga_metadata.csv'
        self._skip_failed_collections: bool = (
            str(config.get('SKIP_FAILED_COLLECTIONS', '')).strip().lower() in MetadataAssembler.TRUE_STRINGS
        )
        self._metadata: any = None

        self._assert_valid_config()
        self._collection_configurations = [cc for cc in self._collection_configurations if cc.get('active', True)]

    @property
    def collection_configurations(self) -> list[dict[str, any]]:
        """ Get active collection configurations specified in config """
        return self._collection_configurations

    @property
    def unwrap_steps(self) -> list[str]:
        """ Get ordered list of nested biospecimen columns to unwrap """
        return self._unwrap_steps

    @property
    def metadata(self) -> any:
        """
        Get unified metadata table for all configured collections, building if needed
        """
        if self._metadata is None:
            self._metadata = self.assemble_collections()
        return self._metadata

    def load_nested_table(self, location: str) -> any:
        """ Load nested source table from JSON file at specified local path or http(s)/file uri """
        _logger.info('Loading source data from "%s"', location)
        json_data: any = json.loads(self._file_manager.read_file(location).decode('utf-8'))
        return get_table_from_records(get_records(json_data))

    def load_collection_tables(self, collection_configuration: dict[str, any]) -> dict[MetadataRecordType, any]:
        """ Load clinical and biospecimen source tables for specified collection configuration """
        return {
            t: self.load_nested_table(collection_configuration[t.source_file_setting]) for t in MetadataRecordType
        }

    def assemble_collection(self, collection_configuration: dict[str, any]) -> any:
        """ Assemble unified metadata for specified collection, projected to output columns in config """
        collection: str = collection_configuration['collection']
        _logger.info('Assembling metadata for collection "%s"', collection)
        tables: dict[MetadataRecordType, any] = self.load_collection_tables(collection_configuration)
        unified: any = assemble_metadata(
            tables[MetadataRecordType.CLINICAL],
            tables[MetadataRecordType.BIOSPECIMEN],
            self._unwrap_steps
        )
        if not petl.nrows(unified):
            _logger.warning('No unified metadata rows for collection "%s"', collection)
            return petl.wrap([list(self._output_columns or petl.header(unified))])
        return select_columns(unified, self._output_columns)

    def assemble_collections(self) -> any:
        """ Assemble and concatenate unified metadata for all configured collections in order """
        tables: list[any] = []
        collection_configuration: dict[str, any]
        for collection_configuration in self._collection_configurations:
            try:
                tables.append(self.assemble_collection(collection_configuration))
            except (RuntimeError, OSError, ValueError) as err:
                if not self._skip_failed_collections:
                    raise
                _logger.warning(
                    'Unable to assemble metadata for collection "%s", skipping: %s',
                    collection_configuration['collection'],
                    err
                )

        if not tables:
            _logger.warning('No collections assembled')
            return petl.wrap([list(self._output_columns)])

        metadata: any = petl.cat(*tables)
        _logger.info('%d unified row(s) assembled for %d collection(s)', petl.nrows(metadata), len(tables))
        return metadata

    def save_metadata(self) -> None:
        """ Save unified metadata to output (csv, tsv or xlsx) file specified in config """
        output_path: str = TcgaFileManager.get_local_path(self._output_file_path)
        metadata: any = self.metadata
        self._file_manager.backup_file(output_path)

        _logger.info('Saving %d unified row(s) to %s', petl.nrows(metadata), output_path)
        output_file_type: str = pathlib.Path(output_path).suffix.lower()
        if output_file_type == '.csv':
            petl.tocsv(metadata, output_path, encoding='utf-8')
        elif output_file_type == '.tsv':
            petl.totsv(metadata, output_path, encoding='utf-8')
        else:
            petl.toxlsx(metadata, output_path, 'tcga_metadata')

    def _get_collection_configuration_errors(self) -> list[str]:
        """ Get errors for collection configurations specified in config """
        try:
            jsonschema.validate(instance=self._collection_configurations, schema=COLLECTION_CONFIGURATIONS_SCHEMA)
        except ValidationError as verr:
            return [f'Collection configurations failed validation: {verr.message}']

        collections: list[str] = [cc['collection'] for cc in self._collection_configurations]
        duplicates: list[str] = sorted({c for c in collections if collections.count(c) > 1})
        if duplicates:
            return [f'Duplicate collection(s) found in collection configurations: {duplicates}']
        return []

    def _assert_valid_config(self) -> None:
        """ Assert that config settings are valid else raise exception """
        _logger.info('Validating configuration')
        errors: list[str] = self._get_collection_configuration_errors()

        setting: str
        value: any
        for setting, value in (('UNWRAP_STEPS', self._unwrap_steps), ('OUTPUT_COLUMNS', self._output_columns)):
            if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
                errors.append(f'{setting} must be list of column names: {value}')

        if pathlib.Path(self._output_file_path).suffix.lower() not in MetadataAssembler.OUTPUT_FILE_TYPES:
            errors.append(
                f'Unsupported output file type "{self._output_file_path}", ' +
                f'must be one of {MetadataAssembler.OUTPUT_FILE_TYPES}'
            )
        elif not TcgaFileManager.is_local_path(self._output_file_path):
            errors.append(f'Output file must be local path: "{self._output_file_path}"')

        error: str
        for error in errors:
            _logger.error(error)
        if errors:
            raise RuntimeError('Invalid configuration')


def configure_logging() -> None:
    """ Configure console and file logging for script use """
    if _logger.hasHandlers():
        _logger.handlers.clear()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s]: %(message)s"
            }
        },
        "handlers": {
            "console": {
                "level": "DEBUG",
                "formatter": "standard",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",  # Default is stderr
            },
            "file": {
                "level": "DEBUG",
                "formatter": "standard",
                "class": "logging.FileHandler",
                "filename": "metadata_assembler.log",
                "mode": "w"
            }
        },
        "loggers": {
            "": { # root logger
                "handlers": ["console", "file"],
                "level": "INFO",
                "propagate": False
            },
            "__main__": {
                "handlers": ["console", "file"],
                "level": "INFO",
                "propagate": False
            }
        }
    })


def print_usage() -> None:
    """ Print script usage """
    _logger.info('usage: python %s [optional config file name/path if not .env]', sys.argv[0])


def main() -> None:
    """ Script entry point """
    configure_logging()
    if len(sys.argv) > 2:
        print_usage()
        return

    config_file: str = sys.argv[1] if len(sys.argv) == 2 else '.env'
    if not TcgaFileManager().file_exists(config_file):
        raise FileNotFoundError(f'Config file "{config_file}" not found')
    config: dict[str, str] = dotenv.dotenv_values(config_file)
    metadata_assembler: MetadataAssembler = MetadataAssembler(config)
    metadata_assembler.save_metadata()


if __name__ == '__main__':
    main()
