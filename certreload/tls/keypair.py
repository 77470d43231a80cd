'''Immutable key pair published to TLS handshakes'''

import ssl
from datetime import datetime
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from pydantic import ConfigDict
from pydantic.dataclasses import dataclass

__all__ = ('ServingPrivateKey', 'SERVING_KEY_TYPES', 'KeyPair')

ServingPrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]
SERVING_KEY_TYPES: tuple[type, ...] = (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)

_keypair_config_dict: ConfigDict = ConfigDict(
    {
        'arbitrary_types_allowed':True
    })

@dataclass(frozen=True, slots=True, config=_keypair_config_dict)
class KeyPair:
    '''
    Parsed certificate chain and its matching private key, alongside a server SSL context loaded with them.
    A changed credential is always published as a new instance, never patched in place.
    '''
    certificate_chain: tuple[x509.Certificate, ...]
    private_key: ServingPrivateKey
    ssl_context: ssl.SSLContext

    def __post_init__(self) -> None:
        if not self.certificate_chain:
            raise ValueError('Certificate chain must contain atleast the leaf certificate')

    @property
    def leaf(self) -> x509.Certificate:
        return self.certificate_chain[0]

    @property
    def fingerprint(self) -> str:
        '''SHA256 fingerprint of the leaf certificate, hex encoded'''
        return self.leaf.fingerprint(hashes.SHA256()).hex()

    @property
    def not_valid_after(self) -> datetime:
        return self.leaf.not_valid_after_utc
