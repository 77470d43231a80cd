import os
import ssl
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

from certreload.config.loader_config import LoaderConfig


def generate_private_key(key_type: str = 'ec') -> CertificateIssuerPrivateKeyTypes:
    if key_type == 'rsa':
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return ec.generate_private_key(ec.SECP256R1())


def build_certificate(private_key: CertificateIssuerPrivateKeyTypes,
                      common_name: str = 'localhost',
                      issuer_key: Optional[CertificateIssuerPrivateKeyTypes] = None,
                      issuer_name: Optional[str] = None,
                      is_ca: bool = False) -> x509.Certificate:
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name or common_name)])
    now = datetime.now(timezone.utc)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    if not is_ca:
        builder = builder.add_extension(x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False)

    return builder.sign(issuer_key or private_key, hashes.SHA256())


def private_key_pem(private_key: CertificateIssuerPrivateKeyTypes) -> bytes:
    return private_key.private_bytes(encoding=serialization.Encoding.PEM,
                                     format=serialization.PrivateFormat.PKCS8,
                                     encryption_algorithm=serialization.NoEncryption())


# DER encoded id-ecPublicKey (1.2.840.10045.2.1), and the same arc ending in an unassigned 9
EC_PUBLIC_KEY_OID_DER: bytes = bytes.fromhex('06072a8648ce3d0201')
UNKNOWN_PUBLIC_KEY_OID_DER: bytes = bytes.fromhex('06072a8648ce3d0209')


def unknown_public_key_pem(certificate: x509.Certificate) -> bytes:
    '''PEM of an EC certificate whose SPKI algorithm is unknown, which parses but has no usable public key'''
    certificate_der = certificate.public_bytes(serialization.Encoding.DER)
    assert certificate_der.count(EC_PUBLIC_KEY_OID_DER) == 1
    return ssl.DER_cert_to_PEM_cert(certificate_der.replace(EC_PUBLIC_KEY_OID_DER, UNKNOWN_PUBLIC_KEY_OID_DER)).encode()


def bump_mtime(*paths: Path, seconds: float = 2.0) -> None:
    '''Move the modification time of each path forward, making the change visible at millisecond granularity'''
    for path in paths:
        modified_ns = os.stat(path).st_mtime_ns + int(seconds * 1_000_000_000)
        os.utime(path, ns=(modified_ns, modified_ns))


@pytest.fixture
def write_credentials() -> Callable[..., tuple[x509.Certificate, CertificateIssuerPrivateKeyTypes]]:
    '''Write a fresh self-signed certificate and its key, moving each mtime past the one of the file it replaces'''

    def _write(cert_path: Path, key_path: Path,
               key_type: str = 'ec', common_name: str = 'localhost') -> tuple[x509.Certificate, CertificateIssuerPrivateKeyTypes]:
        previous_mtimes = {path: os.stat(path).st_mtime_ns for path in (cert_path, key_path) if path.exists()}
        private_key = generate_private_key(key_type)
        certificate = build_certificate(private_key, common_name=common_name)

        cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(private_key_pem(private_key))
        for path, previous_ns in previous_mtimes.items():
            modified_ns = max(previous_ns, os.stat(path).st_mtime_ns) + 2_000_000_000
            os.utime(path, ns=(modified_ns, modified_ns))
        return certificate, private_key

    return _write


@pytest.fixture
def cert_path(tmp_path: Path) -> Path:
    return tmp_path / 'certfile.crt'


@pytest.fixture
def key_path(tmp_path: Path) -> Path:
    return tmp_path / 'keyfile.pem'


@pytest.fixture
def credentials(write_credentials, cert_path: Path, key_path: Path) -> tuple[x509.Certificate, CertificateIssuerPrivateKeyTypes]:
    return write_credentials(cert_path, key_path)


class CallbackRecorder:
    def __init__(self) -> None:
        self.reloads: int = 0
        self.errors: list[Exception] = []

    def on_reload(self) -> None:
        self.reloads += 1

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def make_config(cert_path: Path, key_path: Path, recorder: CallbackRecorder) -> Callable[..., LoaderConfig]:
    def _make(**overrides) -> LoaderConfig:
        fields = {'certificate_filepath' : cert_path,
                  'key_filepath' : key_path,
                  'on_reload' : recorder.on_reload,
                  'on_error' : recorder.on_error}
        fields.update(overrides)
        return LoaderConfig(**fields)

    return _make
