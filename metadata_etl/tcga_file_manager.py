""" TCGA metadata file manager """
import logging
import os
import pathlib
import typing
from urllib.parse import urlparse, ParseResult
from urllib.request import url2pathname

import requests


_logger = logging.getLogger(__name__)


class TcgaFileManager:
    """ Manage source/output files that may be hosted locally or remotely via HTTP (read-only) """

    @staticmethod
    def get_scheme(location: str) -> str:
        """ Get lower-case URI scheme of specified location, empty string for local paths """
        location = str(location if location is not None else '')
        return location.lower().partition('://')[0] if '://' in location else ''

    @staticmethod
    def is_local_path(path_or_url: str) -> bool:
        """ Check if specified input is local path, including file:// URL """
        return TcgaFileManager.get_scheme(path_or_url) in ('', 'file')

    @staticmethod
    def url_to_path(url: str) -> str:
        """ Convert specified URL to path specific to local platform """
        url_parts: ParseResult = urlparse(url)
        host = f"{os.path.sep}{os.path.sep}{url_parts.netloc}{os.path.sep}"
        return os.path.normpath(os.path.join(host, url2pathname(url_parts.path)))

    @staticmethod
    def get_local_path(location: str) -> str:
        """ Get local filesystem path for specified local path or file:// URL """
        scheme: str = TcgaFileManager.get_scheme(location)
        if scheme not in ('', 'file'):
            raise RuntimeError(f'Not a local path: {location}')
        return TcgaFileManager.url_to_path(location) if scheme == 'file' else location

    @staticmethod
    def get_url_content(url: str) -> bytes | bytearray:
        """ Retrieve and return contents from specified URL """
        scheme: str = TcgaFileManager.get_scheme(url)
        url_content: bytes | bytearray
        if scheme == 'file':
            local_file: typing.BinaryIO
            with open(TcgaFileManager.url_to_path(url), 'rb') as local_file:
                url_content = local_file.read()
        elif scheme in ('http', 'https'):
            response: requests.Response
            with requests.get(url, stream=True, timeout=30) as response:
                response.raise_for_status()
                url_content = response.content
        else:
            raise RuntimeError(f'Unsupported URL type/format/protocol: {url}')
        return url_content

    @staticmethod
    def url_content_exists(url: str) -> bool:
        """ Check if specified http(s) URL has content that can be downloaded """
        response: requests.Response
        with requests.get(url, stream=True, timeout=30, allow_redirects=False) as response:
            if 300 <= response.status_code <= 399:
                return False
            try:
                response.raise_for_status()
            except requests.exceptions.HTTPError:
                return False
            chunk: any
            for chunk in response.iter_content(chunk_size=8192):
                return bool(chunk)
        return False

    def file_exists(self, location: str) -> bool:
        """ Check if file exists at specified local path or http(s) uri """
        scheme: str = TcgaFileManager.get_scheme(location)
        if scheme in ('http', 'https'):
            return TcgaFileManager.url_content_exists(location)
        return os.path.isfile(TcgaFileManager.get_local_path(location))

    def read_file(self, location: str) -> bytes | bytearray:
        """ Get byte buffer containing content of file at specified local path or http(s) uri """
        _logger.debug('Reading "%s"', location)
        if not TcgaFileManager.get_scheme(location):
            location = pathlib.Path(os.path.abspath(location)).as_uri()
        return TcgaFileManager.get_url_content(location)

    def backup_file(self, location: str) -> str:
        """ Rename existing local file to '{stem}_last{suffix}', replacing any previous backup """
        path: pathlib.Path = pathlib.Path(TcgaFileManager.get_local_path(location))
        if not path.is_file():
            return None
        backup_path: pathlib.Path = path.with_name(f'{path.stem}_last{path.suffix}')
        _logger.info('Saving copy of existing file "%s" as "%s"', path, backup_path)
        path.replace(backup_path)
        return str(backup_path)
