"""
TLS material for the HTTPS listener.

Uses the configured certificate/key pair when present. Otherwise, if allowed,
generates a self-signed certificate for localhost so a development server can
start without any setup; clients must be told to accept it.
"""
import datetime
import ipaddress
import os
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from relay.config import Settings
from relay.errors import ConfigurationError

logger = structlog.get_logger("tls")

CERT_VALIDITY_DAYS = 365


def generate_self_signed(cert_path: Path, key_path: Path, common_name: str = "localhost") -> None:
    """Write a fresh RSA-2048 key and a matching self-signed certificate."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Minerva Relay"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])
    san_list = [
        x509.DNSName("localhost"),
        x509.IPAddress(ipaddress.IPv4Address("127.0.0.1")),
        x509.IPAddress(ipaddress.IPv6Address("::1")),
    ]

    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=CERT_VALIDITY_DAYS))
        .add_extension(x509.SubjectAlternativeName(san_list), critical=False)
        .sign(key, hashes.SHA256())
    )

    key_path.write_bytes(key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ))
    os.chmod(key_path, 0o600)
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))


def ensure_certificate(settings: Settings) -> tuple[str, str]:
    """
    Return (certfile, keyfile) paths ready for uvicorn.

    Raises ConfigurationError when the pair is missing and self-signed
    generation is disabled.
    """
    cert_path = Path(settings.tls_certfile)
    key_path = Path(settings.tls_keyfile)

    if cert_path.exists() and key_path.exists():
        return str(cert_path), str(key_path)

    if not settings.tls_self_signed:
        raise ConfigurationError(
            f"TLS certificate {cert_path} or key {key_path} not found "
            "and self-signed generation is disabled"
        )

    logger.warning("TLS certificate not found, generating self-signed", certfile=str(cert_path))
    generate_self_signed(cert_path, key_path)
    return str(cert_path), str(key_path)
