"""
Signed Transaction Decoder - Turns JWS transaction payloads into verification results.

Stores deliver transactions as JWS (JSON Web Signature) tokens. A token whose
signature checks out against the configured key becomes a verified result;
one that fails the check becomes an unverified result carrying the untrusted
claims so it can still be finished and investigated.
"""

from datetime import UTC, datetime

import jwt
from structlog import get_logger

from purchasekit.exceptions import StoreTransportError
from purchasekit.models.store import (
    OwnershipType,
    Transaction,
    UnverifiedTransaction,
    VerificationResult,
    VerifiedTransaction,
)

logger = get_logger(__name__)

_REQUIRED_CLAIMS = ["transactionId", "productId"]


def _parse_timestamp(ms: object) -> datetime | None:
    if ms is None:
        return None
    return datetime.fromtimestamp(int(ms) / 1000, tz=UTC)  # type: ignore[call-overload]


class SignedTransactionDecoder:
    """Decodes and verifies signed transactions with PyJWT."""

    def __init__(self, key: str, algorithms: list[str] | None = None) -> None:
        """
        Initialize the decoder.

        Args:
            key: PEM public key (or shared secret for HMAC algorithms)
            algorithms: Accepted JWS algorithms
        """
        if not key:
            raise ValueError("Signing key required")
        self.key = key
        self.algorithms = algorithms or ["ES256"]

    def decode(self, signed_data: str) -> VerificationResult:
        """
        Decode a signed transaction.

        Returns:
            Verified result if the signature is valid, unverified otherwise

        Raises:
            StoreTransportError: If the payload is not a decodable transaction
        """
        try:
            claims = jwt.decode(
                signed_data,
                self.key,
                algorithms=self.algorithms,
                options={"require": _REQUIRED_CLAIMS},
            )
            return VerifiedTransaction(self._parse_transaction(claims))
        except (
            jwt.InvalidSignatureError,
            jwt.ExpiredSignatureError,
            jwt.ImmatureSignatureError,
            jwt.InvalidAlgorithmError,
        ) as exc:
            claims = self._read_unverified(signed_data)
            transaction = self._parse_transaction(claims)
            logger.warning(
                "signed_transaction_unverified",
                transaction_id=transaction.transaction_id,
                reason=str(exc),
            )
            return UnverifiedTransaction(transaction, reason=str(exc))
        except jwt.InvalidTokenError as exc:
            raise StoreTransportError(f"Invalid signed transaction: {exc}", cause=exc) from exc

    def _read_unverified(self, signed_data: str) -> dict[str, object]:
        """Read claims without checking the signature."""
        try:
            claims: dict[str, object] = jwt.decode(
                signed_data,
                options={"verify_signature": False},
            )
            return claims
        except jwt.InvalidTokenError as exc:
            raise StoreTransportError(f"Invalid signed transaction: {exc}", cause=exc) from exc

    def _parse_transaction(self, data: dict[str, object]) -> Transaction:
        """Build a transaction from decoded JWS claims."""
        try:
            ownership = str(data.get("inAppOwnershipType") or "PURCHASED").lower()
            return Transaction(
                transaction_id=str(data["transactionId"]),
                original_transaction_id=str(data.get("originalTransactionId") or data["transactionId"]),
                product_id=str(data["productId"]),
                purchase_date=_parse_timestamp(data.get("purchaseDate")) or datetime.now(UTC),
                ownership_type=OwnershipType(ownership),
                expires_date=_parse_timestamp(data.get("expiresDate")),
                revocation_date=_parse_timestamp(data.get("revocationDate")),
                environment=str(data.get("environment", "Production")),
            )
        except (KeyError, ValueError, TypeError) as exc:
            raise StoreTransportError(f"Malformed transaction claims: {exc}", cause=exc) from exc
