"""
Tests for exception classes.

Covers all exception types and their string representations.
"""

from datetime import UTC, datetime

import pytest

from purchasekit.exceptions import (
    EmptyCatalogError,
    PurchaseKitError,
    StoreTransportError,
    VerificationFailure,
)
from purchasekit.models.store import Transaction


class TestPurchaseKitError:
    """Tests for base PurchaseKitError."""

    def test_is_exception(self):
        """PurchaseKitError is a subclass of Exception."""
        assert issubclass(PurchaseKitError, Exception)

    def test_can_be_raised(self):
        """PurchaseKitError can be raised and caught."""
        with pytest.raises(PurchaseKitError):
            raise PurchaseKitError("test error")


class TestEmptyCatalogError:
    """Tests for EmptyCatalogError."""

    def test_attributes(self):
        """Exception keeps the requested identifiers."""
        exc = EmptyCatalogError(["pro_monthly", "lifetime_unlock"])
        assert exc.product_ids == ("pro_monthly", "lifetime_unlock")

    def test_message_format(self):
        """Exception message lists the requested identifiers."""
        exc = EmptyCatalogError(["pro_monthly"])
        assert "pro_monthly" in str(exc)
        assert "no products" in str(exc)

    def test_message_without_identifiers(self):
        """Exception message handles an empty request."""
        assert "<none>" in str(EmptyCatalogError([]))

    def test_is_purchasekit_error(self):
        """EmptyCatalogError is a PurchaseKitError."""
        assert isinstance(EmptyCatalogError([]), PurchaseKitError)


class TestStoreTransportError:
    """Tests for StoreTransportError."""

    def test_attributes(self):
        """Exception has message and cause attributes."""
        cause = ConnectionError("reset")
        exc = StoreTransportError("Catalog lookup failed", cause=cause)

        assert exc.message == "Catalog lookup failed"
        assert exc.cause is cause

    def test_message_format(self):
        """Exception message is prefixed."""
        exc = StoreTransportError("timeout")
        assert str(exc) == "Store transport error: timeout"

    def test_is_purchasekit_error(self):
        """StoreTransportError is a PurchaseKitError."""
        assert isinstance(StoreTransportError("x"), PurchaseKitError)


class TestVerificationFailure:
    """Tests for VerificationFailure."""

    @pytest.fixture
    def transaction(self):
        return Transaction(
            transaction_id="2000000001",
            product_id="pro_monthly",
            purchase_date=datetime.now(UTC),
        )

    def test_attributes(self, transaction):
        """Exception has transaction and reason attributes."""
        exc = VerificationFailure(transaction, "signature mismatch")

        assert exc.transaction is transaction
        assert exc.reason == "signature mismatch"

    def test_message_format(self, transaction):
        """Exception message names the transaction, product and reason."""
        exc = VerificationFailure(transaction, "signature mismatch")

        assert "2000000001" in str(exc)
        assert "pro_monthly" in str(exc)
        assert "signature mismatch" in str(exc)

    def test_is_purchasekit_error(self, transaction):
        """VerificationFailure is a PurchaseKitError."""
        assert isinstance(VerificationFailure(transaction, "x"), PurchaseKitError)
