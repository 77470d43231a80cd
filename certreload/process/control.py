import logging
from pathlib import Path
from typing import Final, Optional

from certreload.bootup import create_loader, create_loader_config
from certreload.config.loader_config import LoaderConfig
from certreload.errors import CredentialError
from certreload.loader import CertificateLoader
from certreload.process.events import SHUTDOWN_EVENT, EventProxy

__all__ = ('describe_keypair',
           'validate_once',
           'watch')

logger: Final[logging.Logger] = logging.getLogger(__name__)

def describe_keypair(loader: CertificateLoader) -> str:
    keypair = loader.get_certificate()
    return (f'subject={keypair.leaf.subject.rfc4514_string()} '
            f'fingerprint={keypair.fingerprint} '
            f'not_valid_after={keypair.not_valid_after.isoformat()} '
            f'chain_length={len(keypair.certificate_chain)}')

def validate_once(config_filepath: Path) -> str:
    '''Load the configured key pair a single time, without polling'''
    config: Final[LoaderConfig] = create_loader_config(config_filepath, check_reload_period=0)
    with create_loader(config) as loader:
        return describe_keypair(loader)

def _log_reload_error(error: Exception) -> None:
    if isinstance(error, CredentialError):
        logger.error('Keeping previous key pair, reason: %s (cause: %r)', error.description, error.cause)
    else:
        logger.error('Keeping previous key pair, reason: %r', error)

async def watch(config_filepath: Path,
                check_reload_period: Optional[float] = None,
                shutdown_event: Optional[EventProxy] = None) -> None:
    '''Keep a loader running for the configured credentials until the shutdown event is set'''
    shutdown_event = shutdown_event or EventProxy(SHUTDOWN_EVENT)
    loader: Optional[CertificateLoader] = None

    def on_reload() -> None:
        if loader is None:
            return
        logger.info('Key pair rotated: %s', describe_keypair(loader))

    config: Final[LoaderConfig] = create_loader_config(config_filepath,
                                                       on_reload=on_reload,
                                                       on_error=_log_reload_error,
                                                       check_reload_period=check_reload_period)
    if not config.polling_enabled:
        raise ValueError(f'Watching requires a positive check_reload_period, got {config.check_reload_period}')

    loader = create_loader(config)
    logger.info('Watching %s and %s every %ss: %s',
                config.certificate_filepath, config.key_filepath, config.check_reload_period, describe_keypair(loader))
    try:
        await shutdown_event.wait()
    finally:
        loader.close()
        if loader.scheduler.task:
            await loader.scheduler.task
