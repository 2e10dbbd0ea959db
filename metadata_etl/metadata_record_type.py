""" TCGA Metadata Record Types """
from __future__ import annotations
from enum import Enum


class MetadataRecordType(str, Enum):
    """
    Enum class for source record types retrieved per collection
    """
    BIOSPECIMEN = 'biospecimen'
    CLINICAL = 'clinical'

    def __str__(self):
        return self.value

    @staticmethod
    def get(record_type: str) -> MetadataRecordType:
        """ Get MetadataRecordType matching specified record_type or None if not found """
        try:
            return MetadataRecordType[str(record_type).upper()]
        except KeyError:
            return None

    @property
    def column_prefix(self) -> str:
        """ Get namespace prefix applied to column names of this record type after joining e.g. 'clinical.' """
        return f'{self.value}.'

    @property
    def source_file_setting(self) -> str:
        """ Get collection configuration property holding the source file location e.g. 'clinical_file' """
        return f'{self.value}_file'
