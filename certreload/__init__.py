'''Live-reloading TLS key pair loader'''

from certreload.config.loader_config import LoaderConfig
from certreload.errors import CredentialError, InitialLoadError, LoadError, ReloadParseError, StatError
from certreload.loader import CertificateLoader, LoaderState
from certreload.tls.credentials import load_keypair, make_listener_ssl_context
from certreload.tls.keypair import KeyPair

__all__ = ('CertificateLoader',
           'LoaderState',
           'LoaderConfig',
           'KeyPair',
           'load_keypair',
           'make_listener_ssl_context',
           'CredentialError',
           'StatError',
           'LoadError',
           'InitialLoadError',
           'ReloadParseError')
