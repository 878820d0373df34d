"""Wallet ownership proofs: signed nonces checked with Ed25519."""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Protocol

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from jose import JWTError, jwt

from config import settings
from services.errors import InvalidWalletProof

logger = logging.getLogger(__name__)

# Solana addresses: base58, 32-44 characters, 32-byte public key.
WALLET_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
NONCE_TOKEN_TYPE = "wallet_nonce"


def is_valid_wallet_address(address: Any) -> bool:
    if not isinstance(address, str) or not WALLET_ADDRESS_PATTERN.match(address):
        return False
    try:
        return len(base58.b58decode(address)) == 32
    except ValueError:
        return False


def proof_message(nonce: str) -> str:
    return f"{settings.WALLET_PROOF_MESSAGE_PREFIX}{nonce}"


def issue_wallet_nonce(wallet_address: str) -> Dict[str, Any]:
    """Issue a short-lived nonce token bound to ``wallet_address``."""
    if not is_valid_wallet_address(wallet_address):
        raise InvalidWalletProof("Invalid wallet address.")
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=max(int(settings.WALLET_NONCE_TTL_MINUTES), 1))
    nonce = secrets.token_urlsafe(16)
    token = jwt.encode(
        {
            "type": NONCE_TOKEN_TYPE,
            "wallet": wallet_address,
            "nonce": nonce,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {
        "nonce": nonce,
        "nonce_token": token,
        "message": proof_message(nonce),
        "expires_at": int(expires_at.timestamp()),
    }


@dataclass(frozen=True)
class WalletProof:
    wallet_address: str
    nonce_token: str
    signature: str  # base58-encoded detached signature


class WalletProofVerifier(Protocol):
    def verify(self, proof: WalletProof) -> None:
        """Raise InvalidWalletProof unless the proof is valid."""


class Ed25519WalletProofVerifier:
    def verify(self, proof: WalletProof) -> None:
        if not is_valid_wallet_address(proof.wallet_address):
            raise InvalidWalletProof("Invalid wallet address.")
        try:
            claims = jwt.decode(proof.nonce_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        except JWTError as exc:
            raise InvalidWalletProof("Nonce is invalid or expired.") from exc
        if claims.get("type") != NONCE_TOKEN_TYPE or claims.get("wallet") != proof.wallet_address:
            raise InvalidWalletProof("Nonce was not issued for this wallet.")

        try:
            public_key = Ed25519PublicKey.from_public_bytes(base58.b58decode(proof.wallet_address))
            signature = base58.b58decode(proof.signature)
            public_key.verify(signature, proof_message(str(claims.get("nonce", ""))).encode("utf-8"))
        except (InvalidSignature, ValueError) as exc:
            logger.info("Rejected wallet proof for %s", proof.wallet_address)
            raise InvalidWalletProof() from exc


def get_wallet_verifier() -> WalletProofVerifier:
    return Ed25519WalletProofVerifier()
