'''Utility methods for loading server-side TLS credentials'''

import ssl
from pathlib import Path
from typing import Final, Optional, TYPE_CHECKING

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from certreload.errors import LoadError
from certreload.tls.keypair import KeyPair, SERVING_KEY_TYPES

if TYPE_CHECKING:
    from certreload.loader import CertificateLoader

__all__ = ('load_keypair', 'make_server_ssl_context', 'make_listener_ssl_context')

def _read_credential_file(filepath: Path) -> bytes:
    try:
        contents: bytes = filepath.read_bytes()
    except OSError as e:
        raise LoadError(f'Failed to read credential file {filepath}', filepath=filepath) from e

    if not contents.strip():
        raise LoadError(f'Credential file {filepath} is empty', filepath=filepath)
    return contents

def _public_key_bytes(public_key) -> bytes:
    return public_key.public_bytes(encoding=serialization.Encoding.DER,
                                   format=serialization.PublicFormat.SubjectPublicKeyInfo)

def make_server_ssl_context(certfile: Path,
                            keyfile: Path,
                            ciphers: str,
                            cafile: Optional[Path] = None) -> ssl.SSLContext:
    '''Create an SSL context for a server

    Args:
        certfile (Path): Path to the certificate chain file (PEM) used by the server.
        keyfile (Path): Path to the private key file (PEM) used by the server.
        ciphers (str): String specifying the allowed ciphers (OpenSSL cipher list format).
        cafile (Optional[Path]): Path to a CA bundle used to verify client certificates. If not provided, client certificates are not requested.

    Returns:
        ssl.SSLContext: Configured SSL context for the server.
    '''

    ssl_context = ssl.SSLContext(protocol=ssl.PROTOCOL_TLS_SERVER)
    ssl_context.load_cert_chain(certfile, keyfile)
    ssl_context.set_ciphers(ciphers)
    ssl_context.check_hostname = False
    ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
    if cafile:
        ssl_context.load_verify_locations(cafile)
        ssl_context.verify_mode = ssl.VerifyMode.CERT_REQUIRED
    else:
        ssl_context.verify_mode = ssl.VerifyMode.CERT_NONE

    return ssl_context

def load_keypair(certificate_filepath: Path,
                 key_filepath: Path,
                 ciphers: str,
                 cafile: Optional[Path] = None) -> KeyPair:
    '''Load a certificate chain and its matching private key from disk

    Args:
        certificate_filepath (Path): PEM file holding the leaf certificate, optionally followed by intermediates.
        key_filepath (Path): PEM file holding the unencrypted private key of the leaf certificate.
        ciphers (str): OpenSSL cipher list for the SSL context built for this pair.
        cafile (Optional[Path]): CA bundle for client certificate verification.

    Raises:
        LoadError: If either file is missing or unreadable, its contents are malformed,
            the key type is unsupported, or the private key does not belong to the leaf certificate.
            The underlying exception is chained as the cause.

    Returns:
        KeyPair: Newly parsed key pair.
    '''

    certificate_bytes: Final[bytes] = _read_credential_file(certificate_filepath)
    private_key_bytes: Final[bytes] = _read_credential_file(key_filepath)

    try:
        certificate_chain: tuple[x509.Certificate, ...] = tuple(x509.load_pem_x509_certificates(certificate_bytes))
    except ValueError as e:
        raise LoadError(f'Malformed certificate chain in {certificate_filepath}', filepath=certificate_filepath) from e

    try:
        private_key: PrivateKeyTypes = serialization.load_pem_private_key(private_key_bytes, password=None)
    except (ValueError, TypeError) as e:
        raise LoadError(f'Malformed private key in {key_filepath}', filepath=key_filepath) from e

    if not isinstance(private_key, SERVING_KEY_TYPES):
        raise LoadError(f'Unsupported private key type in {key_filepath}: {private_key.__class__.__name__}', filepath=key_filepath)

    try:
        leaf_public_key: bytes = _public_key_bytes(certificate_chain[0].public_key())
    except (ValueError, UnsupportedAlgorithm) as e:
        raise LoadError(f'Unsupported public key in leaf certificate of {certificate_filepath}', filepath=certificate_filepath) from e

    if _public_key_bytes(private_key.public_key()) != leaf_public_key:
        raise LoadError(f'Private key {key_filepath} does not match leaf certificate in {certificate_filepath}', filepath=key_filepath)

    try:
        ssl_context: ssl.SSLContext = make_server_ssl_context(certfile=certificate_filepath,
                                                              keyfile=key_filepath,
                                                              ciphers=ciphers,
                                                              cafile=cafile)
    except (OSError, ValueError) as e:     # ssl.SSLError is an OSError subclass
        raise LoadError(f'Failed to build SSL context from {certificate_filepath} and {key_filepath}', filepath=certificate_filepath) from e

    return KeyPair(certificate_chain=certificate_chain, private_key=private_key, ssl_context=ssl_context)

def make_listener_ssl_context(loader: 'CertificateLoader') -> ssl.SSLContext:
    '''Create the SSL context to hand to a listening socket (e.g. asyncio.start_server(ssl=...))

    The listener context is built separately from the published key pairs, whose own contexts are never touched.
    Its SNI hook points every incoming handshake at whichever key pair the loader publishes at that moment.

    Raises:
        LoadError: If the configured credential files cannot be loaded into a context.
    '''
    try:
        ssl_context: ssl.SSLContext = make_server_ssl_context(certfile=loader.config.certificate_filepath,
                                                              keyfile=loader.config.key_filepath,
                                                              ciphers=loader.config.ciphers,
                                                              cafile=loader.config.cafile)
    except (OSError, ValueError) as e:
        raise LoadError(f'Failed to build listener SSL context from {loader.config.certificate_filepath}',
                        filepath=loader.config.certificate_filepath) from e
    ssl_context.sni_callback = loader.sni_callback
    return ssl_context
