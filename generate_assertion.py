#!/usr/bin/env python3
"""
Build and sign the ES256 client assertion exchanged for an ABM bearer token.

The assertion is a compact JWT signed with the account's EC P-256 key. The
JOSE signature is the raw 64 byte r||s pair, not the DER structure an ECDSA
signer produces; authlib's ES256 algorithm does that conversion.

Usage:
  python3 generate_assertion.py <private_key_file> <client_id> <key_id>
"""
import sys
import time
import uuid

from authlib.common.encoding import to_unicode
from authlib.jose import jwt
from authlib.jose.errors import JoseError
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from abm_config import TOKEN_AUDIENCE
from abm_errors import SigningError

ALG = 'ES256'
# The expiration may not exceed 180 days from the issue timestamp.
ASSERTION_LIFETIME = 86400 * 180


def load_private_key(path):
    """Load a PEM EC P-256 private key, raising SigningError on anything else."""
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except (OSError, TypeError) as e:
        raise SigningError(f"Failed reading private key file {path}: {e}") from e

    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(
            f"Could not load {path}. Verify your .pem contains a valid EC private key: {e}"
        ) from e

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise SigningError(f"{path} is not an EC private key")
    if not isinstance(key.curve, ec.SECP256R1):
        raise SigningError(f"{path} uses curve {key.curve.name}, ES256 requires P-256")
    return key


def build_header(key_id):
    return {'alg': ALG, 'kid': key_id, 'typ': 'JWT'}


def build_claims(client_id, now=None, jti=None):
    issued_at = int(time.time()) if now is None else int(now)
    return {
        'sub': client_id,
        'aud': TOKEN_AUDIENCE,
        'iat': issued_at,
        'exp': issued_at + ASSERTION_LIFETIME,
        'jti': jti or str(uuid.uuid4()).lower(),
        'iss': client_id,
    }


def generate_client_assertion(private_key, client_id, key_id, now=None, jti=None):
    """
    Return the signed client assertion string.

    private_key may be a loaded EC key or a path to a PEM file.
    """
    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        private_key = load_private_key(private_key)

    pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    try:
        client_assertion = jwt.encode(build_header(key_id), build_claims(client_id, now=now, jti=jti), pem)
    except (JoseError, ValueError, TypeError) as e:
        raise SigningError(f"Signing failed: {e}") from e
    return to_unicode(client_assertion)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 3:
        print("Usage: python3 generate_assertion.py <private_key_file> <client_id> <key_id>")
        return 2
    try:
        print(generate_client_assertion(argv[0], argv[1], argv[2]))
    except SigningError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
