from abc import ABC
from datetime import datetime
from pathlib import Path
from typing import Optional

__all__ = ('CredentialError', 'StatError', 'LoadError', 'InitialLoadError', 'ReloadParseError')

class CredentialError(ABC, Exception):
    '''Abstract base exception class for all failures to observe or load a key pair from disk'''
    description: str
    exception_iso_timestamp: str
    filepath: Optional[Path]

    def __init__(self, description: Optional[str] = None, filepath: Optional[Path] = None):
        self.description = description or self.__class__.description
        self.filepath = filepath
        self.exception_iso_timestamp = datetime.now().isoformat()
        super().__init__(self.description)

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__


class StatError(CredentialError):
    description: str = 'Failed to read modification time of credential file'

class LoadError(CredentialError):
    description: str = 'Failed to load key pair'

class InitialLoadError(LoadError):
    description: str = 'Failed to load initial key pair'

class ReloadParseError(LoadError):
    description: str = 'Failed to reload changed key pair, retaining previous key pair'
