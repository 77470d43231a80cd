'''Background reload loop and the check cycle it runs'''

import asyncio
import logging
from typing import Any, Callable, Final, Optional

from certreload.config.loader_config import LoaderConfig
from certreload.errors import CredentialError, LoadError, ReloadParseError, StatError
from certreload.tls.credentials import load_keypair
from certreload.tls.keypair import KeyPair
from certreload.tls.store import CertificateStore
from certreload.tls.watermark import ChangeDetector, FileWatermark

__all__ = ('ReloadScheduler',)

logger: Final[logging.Logger] = logging.getLogger(__name__)

class ReloadScheduler:
    '''
    Periodically checks the configured credential files and publishes a freshly loaded key pair whenever they change.
    One scheduler belongs to exactly one loader, and its cycles never overlap.
    '''
    __slots__ = ('_config', '_detector', '_store',
                 '_cancel_event',
                 '_loop', '_task')

    def __init__(self,
                 config: LoaderConfig,
                 detector: ChangeDetector,
                 store: CertificateStore) -> None:
        self._config: Final[LoaderConfig] = config
        self._detector: Final[ChangeDetector] = detector
        self._store: Final[CertificateStore] = store

        # Set once, by cancel()
        self._cancel_event: Final[asyncio.Event] = asyncio.Event()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def period(self) -> float:
        return self._config.check_reload_period

    @property
    def task(self) -> Optional[asyncio.Task[None]]:
        return self._task

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception('Callback %r raised while reporting a check cycle outcome', callback)

    def _report_error(self, error: CredentialError) -> None:
        logger.warning('Check cycle failed for %s: %s', error.filepath or self._config.certificate_filepath, error)
        self._notify(self._config.on_error, error)

    def check(self) -> bool:
        '''Run a single check cycle

        Stats both credential files and reloads the key pair if either modification time differs
        from the committed watermark. Failures are reported through the on-error callback, and leave
        both the published key pair and the watermark untouched.

        Returns:
            bool: True if a new key pair was published, False otherwise.
        '''
        try:
            observation: Optional[tuple[FileWatermark, FileWatermark]] = self._detector.poll(self._config.certificate_filepath,
                                                                                           self._config.key_filepath)
        except StatError as stat_error:
            self._report_error(stat_error)
            return False

        if observation is None:
            logger.debug('Credential files unchanged: %s, %s', self._config.certificate_filepath, self._config.key_filepath)
            return False

        try:
            keypair: KeyPair = load_keypair(certificate_filepath=self._config.certificate_filepath,
                                            key_filepath=self._config.key_filepath,
                                            ciphers=self._config.ciphers,
                                            cafile=self._config.cafile)
        except LoadError as load_error:
            reload_error = ReloadParseError(str(load_error), filepath=load_error.filepath)
            reload_error.__cause__ = load_error
            self._report_error(reload_error)
            return False

        # Commit the pre-load observation, then publish
        self._detector.commit(*observation)
        self._store.swap(keypair)
        logger.info('Reloaded key pair from %s (fingerprint: %s, valid until: %s)',
                    self._config.certificate_filepath, keypair.fingerprint, keypair.not_valid_after.isoformat())

        self._notify(self._config.on_reload)
        return True

    async def run(self) -> None:
        while not self._cancel_event.is_set():
            try:
                await asyncio.wait_for(self._cancel_event.wait(), timeout=self.period)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                self.check()
            except Exception as e:
                logger.exception('Unexpected failure in check cycle for %s', self._config.certificate_filepath)
                self._notify(self._config.on_error, e)
        logger.debug('Reload loop for %s stopped', self._config.certificate_filepath)

    def start(self) -> asyncio.Task[None]:
        '''Schedule the reload loop on the running event loop'''
        if self._task is not None:
            raise RuntimeError('Reload scheduler has already been started')
        if self.period <= 0:
            raise ValueError(f'Check reload period must be positive to start polling, got {self.period}')

        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self.run(), name=f'certreload:{self._config.certificate_filepath}')
        return self._task

    def cancel(self) -> None:
        '''Signal the reload loop to stop at its next wait. Does not wait for the loop to finish'''
        try:
            running_loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if self._loop is None or running_loop is self._loop or self._loop.is_closed():
            self._cancel_event.set()
        else:
            self._loop.call_soon_threadsafe(self._cancel_event.set)
