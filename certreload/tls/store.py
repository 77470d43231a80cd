import threading
from typing import Final, Optional

from certreload.tls.keypair import KeyPair

__all__ = ('CertificateStore',)

class CertificateStore:
    '''Single published key pair, read by handshakes and replaced by reload cycles'''
    __slots__ = ('_lock', '_keypair')

    def __init__(self, keypair: KeyPair, lock: Optional[threading.Lock] = None) -> None:
        self._lock: Final[threading.Lock] = lock or threading.Lock()
        self._keypair: KeyPair = keypair

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def current(self) -> KeyPair:
        with self._lock:
            return self._keypair

    def swap(self, keypair: KeyPair) -> KeyPair:
        '''Publish a new key pair, returning the superseded one. Readers holding the old pair may keep using it'''
        with self._lock:
            previous: KeyPair = self._keypair
            self._keypair = keypair
        return previous
