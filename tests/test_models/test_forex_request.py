"""Tests for the ForexRequest model — lines, totals, documents, and status lifecycle."""

from decimal import Decimal

import pytest

from app.models.forex_request import (
    ForexRequest,
    ForexRequestStatus,
    OrderLine,
    OrderType,
    required_documents,
)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestForexRequestCreation:
    def test_defaults(self, make_request):
        """A new request is Pending with no stock deducted."""
        request = make_request()
        assert request.id is not None
        assert request.status == ForexRequestStatus.PENDING
        assert request.stock_deducted is False
        assert request.approved_at is None
        assert request.created_at is not None


# ---------------------------------------------------------------------------
# Order lines
# ---------------------------------------------------------------------------


class TestOrderLines:
    def test_single_line_mirrored_to_legacy_fields(self, make_request, make_line):
        request = make_request([make_line(currency="EUR", currency_amount=Decimal("75"))])
        assert request.currency == "EUR"
        assert request.product == "Cash"
        assert request.currency_amount == Decimal("75")

    def test_multi_line_leaves_legacy_fields(self, make_request, make_line):
        request = make_request([make_line(), make_line(currency="EUR")])
        assert request.currency is None
        assert len(request.order_details) == 2

    def test_lines_stored_as_json_safe_dicts(self, make_request, make_line):
        request = make_request([make_line(currency_amount=Decimal("12.5"))])
        assert request.order_details[0]["currency_amount"] == "12.5"

    def test_lines_read_back(self, make_request, make_line):
        lines = [make_line(), make_line(currency="GBP", product="Forex Card")]
        request = make_request(lines)
        assert request.order_lines() == lines

    def test_legacy_only_row_reads_as_one_line(self, make_request):
        """Rows created before order_details existed still yield their line."""
        request = make_request([])
        request.currency = "USD"
        request.product = "Cash"
        request.currency_amount = Decimal("40")
        request.amount_in_inr = Decimal("3320")

        lines = request.order_lines()
        assert lines == [OrderLine("Buy", "USD", "Cash", Decimal("40"), Decimal("3320"))]

    def test_no_lines(self, make_request):
        assert make_request([]).order_lines() == []

    def test_totals(self, make_request, make_line):
        request = make_request([
            make_line(currency_amount=Decimal("100"), amount_in_inr=Decimal("8300")),
            make_line(currency="EUR", currency_amount=Decimal("50"), amount_in_inr=Decimal("4500")),
        ])
        assert request.total_currency_amount() == Decimal("150")
        assert request.total_amount_in_inr() == Decimal("12800")

    def test_summary_groups_by_currency_and_product(self, make_request, make_line):
        request = make_request([
            make_line(currency_amount=Decimal("100"), amount_in_inr=Decimal("8300")),
            make_line(currency="EUR", product="Forex Card"),
            make_line(currency_amount=Decimal("20"), amount_in_inr=Decimal("1660")),
        ])
        summary = request.order_summary()
        assert [(s["currency"], s["product"]) for s in summary] == [
            ("USD", "Cash"), ("EUR", "Forex Card"),
        ]
        assert summary[0]["count"] == 2
        assert summary[0]["total_currency_amount"] == Decimal("120")
        assert summary[0]["total_amount_in_inr"] == Decimal("9960")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_complete_leisure_request(self, make_request):
        assert make_request().missing_documents() == []

    def test_missing_purpose_document(self, make_request):
        request = make_request(purpose="Medical Treatment")
        assert request.missing_documents() == ["medical_certificate"]

    def test_sell_needs_only_kyc(self, make_request):
        request = make_request(
            order_type=OrderType.SELL, purpose=None, air_ticket=None, visa_image=None,
        )
        assert request.missing_documents() == []

    def test_required_documents_unknown_purpose(self):
        assert required_documents("Buy", "Pilgrimage") == []

    def test_business_fields(self, make_request):
        request = make_request(purpose="Business Visit", business_name="Acme")
        assert request.missing_business_fields() == ["business_reason", "business_type"]

    def test_business_fields_only_for_business_visit(self, make_request):
        assert make_request().missing_business_fields() == []


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


class TestStatusTransitions:
    @pytest.mark.parametrize("target", [
        ForexRequestStatus.APPROVED,
        ForexRequestStatus.REJECTED,
        ForexRequestStatus.DOCUMENTS_REQUESTED,
    ])
    def test_pending_moves_on(self, make_request, target):
        request = make_request()
        request.transition_to(target)
        assert request.status == target

    def test_approval_stamps_time(self, make_request):
        request = make_request()
        request.transition_to(ForexRequestStatus.APPROVED)
        assert request.approved_at is not None

    def test_documents_requested_back_to_pending(self, make_request):
        request = make_request(status=ForexRequestStatus.DOCUMENTS_REQUESTED)
        request.transition_to(ForexRequestStatus.PENDING)
        assert request.status == ForexRequestStatus.PENDING

    def test_documents_requested_cannot_be_approved(self, make_request):
        request = make_request(status=ForexRequestStatus.DOCUMENTS_REQUESTED)
        with pytest.raises(ValueError):
            request.transition_to(ForexRequestStatus.APPROVED)

    @pytest.mark.parametrize("terminal", [ForexRequestStatus.APPROVED, ForexRequestStatus.REJECTED])
    @pytest.mark.parametrize("target", list(ForexRequestStatus))
    def test_terminal_states(self, make_request, terminal, target):
        request = make_request(status=terminal)
        with pytest.raises(ValueError):
            request.transition_to(target)
        assert request.status == terminal

    def test_is_valid_transition(self):
        assert ForexRequest.is_valid_transition(
            ForexRequestStatus.PENDING, ForexRequestStatus.REJECTED,
        )
        assert not ForexRequest.is_valid_transition(
            ForexRequestStatus.PENDING, ForexRequestStatus.PENDING,
        )
