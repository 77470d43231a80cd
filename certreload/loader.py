'''Live TLS key pair loader, reloading the certificate and key files whenever they change on disk'''

import enum
import logging
import ssl
import threading
from types import TracebackType
from typing import Any, Final, Optional
from typing_extensions import Self

from certreload.config.loader_config import LoaderConfig
from certreload.errors import CredentialError, InitialLoadError
from certreload.process.scheduler import ReloadScheduler
from certreload.tls.credentials import load_keypair
from certreload.tls.keypair import KeyPair
from certreload.tls.store import CertificateStore
from certreload.tls.watermark import ChangeDetector

__all__ = ('LoaderState', 'CertificateLoader')

logger: Final[logging.Logger] = logging.getLogger(__name__)

class LoaderState(enum.Enum):
    ACTIVE = 'active'
    CLOSED = 'closed'

class CertificateLoader:
    '''
    Loads a TLS key pair once at construction and, if a positive check period is configured,
    keeps it up to date from a background task on the running event loop.

    Construction fails with InitialLoadError if the initial key pair cannot be loaded. Every
    later failure is reported through the configured on-error callback while the last
    successfully loaded key pair keeps being served.
    '''
    __slots__ = ('_config', '_lock', '_state', '_store', '_scheduler')

    def __init__(self, config: LoaderConfig) -> None:
        try:
            # Watermark is observed before parsing
            detector: ChangeDetector = ChangeDetector.capture(config.certificate_filepath, config.key_filepath)
            keypair: KeyPair = load_keypair(certificate_filepath=config.certificate_filepath,
                                            key_filepath=config.key_filepath,
                                            ciphers=config.ciphers,
                                            cafile=config.cafile)
        except CredentialError as e:
            raise InitialLoadError(f'{InitialLoadError.description}: {e}', filepath=e.filepath) from e

        self._config: Final[LoaderConfig] = config
        self._lock: Final[threading.Lock] = threading.Lock()
        self._state: LoaderState = LoaderState.ACTIVE
        self._store: Final[CertificateStore] = CertificateStore(keypair, lock=self._lock)
        self._scheduler: Final[ReloadScheduler] = ReloadScheduler(config=config, detector=detector, store=self._store)

        logger.info('Loaded key pair from %s (fingerprint: %s)', config.certificate_filepath, keypair.fingerprint)
        if config.polling_enabled:
            self._scheduler.start()

    @property
    def config(self) -> LoaderConfig:
        return self._config

    @property
    def scheduler(self) -> ReloadScheduler:
        return self._scheduler

    @property
    def state(self) -> LoaderState:
        with self._lock:
            return self._state

    def is_closed(self) -> bool:
        '''A closed loader no longer checks for changes, but keeps serving its last key pair'''
        return self.state is LoaderState.CLOSED

    def close(self) -> None:
        with self._lock:
            was_active: bool = self._state is LoaderState.ACTIVE
            self._state = LoaderState.CLOSED

        if was_active:
            self._scheduler.cancel()
            logger.debug('Closed key pair loader for %s', self._config.certificate_filepath)

    def check(self) -> bool:
        '''Run a single check cycle immediately. Must not be called while the background task of this loader is polling'''
        return self._scheduler.check()

    def get_certificate(self, handshake_context: Any = None) -> KeyPair:
        '''Obtain the currently published key pair. The handshake context is ignored, and this never fails'''
        return self._store.current()

    def sni_callback(self, ssl_object: ssl.SSLObject, server_name: Optional[str], ssl_context: ssl.SSLContext) -> None:
        '''ssl.SSLContext.sni_callback hook serving every handshake from the latest published key pair'''
        ssl_object.context = self.get_certificate(ssl_object).ssl_context

    def __enter__(self) -> Self:
        return self

    def __exit__(self,
                 exc_type: Optional[type[BaseException]],
                 exc_value: Optional[BaseException],
                 traceback: Optional[TracebackType]) -> None:
        self.close()
