'''Modification-time tracking for the certificate and key files'''

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from typing_extensions import Self

from certreload.errors import StatError

__all__ = ('FileWatermark', 'ChangeDetector', 'stat_watermark')

@dataclass(frozen=True, slots=True)
class FileWatermark:
    filepath: Path
    modified_ms: int

def stat_watermark(filepath: Path) -> FileWatermark:
    try:
        modified_ns: int = os.stat(filepath).st_mtime_ns
    except OSError as e:
        raise StatError(f'Failed to stat {filepath}', filepath=filepath) from e
    return FileWatermark(filepath=filepath, modified_ms=modified_ns // 1_000_000)

class ChangeDetector:
    '''
    Holds the last committed modification times of the certificate and key files.
    Observations are only committed by the caller once a reload using them has succeeded.
    '''
    __slots__ = ('_certificate', '_key')

    def __init__(self, certificate: FileWatermark, key: FileWatermark) -> None:
        self._certificate: FileWatermark = certificate
        self._key: FileWatermark = key

    @classmethod
    def capture(cls, certificate_filepath: Path, key_filepath: Path) -> Self:
        return cls(stat_watermark(certificate_filepath), stat_watermark(key_filepath))

    @property
    def certificate(self) -> FileWatermark:
        return self._certificate

    @property
    def key(self) -> FileWatermark:
        return self._key

    def poll(self, certificate_filepath: Path, key_filepath: Path) -> Optional[tuple[FileWatermark, FileWatermark]]:
        '''Stat both files and report the fresh observation if either differs from the committed watermark

        Raises:
            StatError: If either file cannot be stat-ed. The committed watermark is left untouched.

        Returns:
            Optional[tuple[FileWatermark,FileWatermark]]: None if unchanged, otherwise the (certificate, key) observation.
        '''
        certificate: FileWatermark = stat_watermark(certificate_filepath)
        key: FileWatermark = stat_watermark(key_filepath)

        if (certificate.modified_ms == self._certificate.modified_ms
            and key.modified_ms == self._key.modified_ms):
            return None
        return certificate, key

    def commit(self, certificate: FileWatermark, key: FileWatermark) -> None:
        self._certificate = certificate
        self._key = key
