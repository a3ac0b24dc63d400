"""JWT access token creation and validation (ES256).

Sign-in (issuance) and the request dependencies (validation) share one
TokenService instance built in the application lifespan.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

ALGORITHM = "ES256"
ISSUER = "flutterprep"
AUDIENCE = "flutterprep-api"
ACCESS_TOKEN_TTL_MIN = 60


class TokenService:
    """Signs and verifies access tokens with one EC key pair.

    Without a PEM the key is generated per process, so tokens do not survive
    a restart and are not shared between instances.  Production deployments
    set JWT_PRIVATE_KEY_PEM.
    """

    def __init__(self, private_key_pem: str | None = None) -> None:
        if private_key_pem:
            key = serialization.load_pem_private_key(private_key_pem.encode(), password=None)
            if not isinstance(key, ec.EllipticCurvePrivateKey):
                raise ValueError("JWT_PRIVATE_KEY_PEM must be an EC (P-256) private key")
            self._private_key = key
        else:
            self._private_key = ec.generate_private_key(ec.SECP256R1())
        self._public_key = self._private_key.public_key()

    def create_access_token(self, *, sub: str, roles: list[str] | None = None) -> str:
        """Claims: sub, iss, aud, exp, iat, jti, roles."""
        now = datetime.now(UTC)
        payload = {
            "sub": sub,
            "iss": ISSUER,
            "aud": AUDIENCE,
            "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
            "iat": now,
            "jti": str(uuid.uuid4()),
            "roles": roles or ["user"],
        }
        return jwt.encode(payload, self._private_key, algorithm=ALGORITHM)

    def decode_access_token(self, token: str) -> dict:
        """Verify signature and claims, return the payload.

        Pins the algorithm to ES256 so alg:none and alg-switching are rejected.
        Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
        """
        return jwt.decode(
            token,
            self._public_key,
            algorithms=[ALGORITHM],
            issuer=ISSUER,
            audience=AUDIENCE,
            options={"require": ["sub", "exp", "iat", "jti"]},
        )
