from decimal import Decimal

import pytest

from payout_engine.core.config import Settings
from payout_engine.core.exceptions import (
    DanglingAdjustmentError, DuplicateDealError, MultiMonthUploadError, PayeeClassMismatchError,
    UnknownPayeeError,
)
from payout_engine.models import (
    Invoice, InvoiceAdjustment, MonthlySummary, PayeeClass, PayeeConfig, Payout, PayoutKind,
    UploadBatch, UploadStatus,
)
from payout_engine.services.ingestion import IngestionService, upload_month
from tests.factories import (
    ACCOUNT_EXECUTIVE, RECRUITER, RECRUITMENT_MANAGER, collection_row, invoice_row, ledger,
    make_payee, payouts_for, upload,
)

D = Decimal
AE = "ae@example.com"
REC = "rec@example.com"
RM = "rm@example.com"
AM = "am@example.com"


def _invoice(db, email, deal_id):
    return (
        db.query(Invoice)
        .filter(Invoice.payee_email == email, Invoice.deal_id == deal_id)
        .one()
    )


def _summary(db, email, month):
    return (
        db.query(MonthlySummary)
        .filter(MonthlySummary.payee_email == email, MonthlySummary.month == month)
        .first()
    )


def _payouts_from(db, email, source_month):
    return [(p.kind, p.amount) for p in payouts_for(db, email) if p.source_month == source_month]


class TestUploadMonth:
    def test_single_month(self):
        batch = upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "100", "2025-01")],
            collections=[collection_row("D1", AE, "100", "2025-01")],
        )
        assert upload_month(batch) == "2025-01"

    def test_empty_batch(self):
        assert upload_month(upload(PayeeClass.ACCOUNT_EXECUTIVE)) is None

    def test_multiple_months_rejected(self):
        batch = upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "100", "2025-01")],
            collections=[collection_row("D1", AE, "100", "2025-02")],
        )
        with pytest.raises(MultiMonthUploadError) as exc:
            upload_month(batch)
        assert str(exc.value) == (
            "Data for multiple months was found in a single upload. "
            "Please upload data for one month at a time."
        )


class TestProcessBatch:
    def test_account_executive_scenario(self, db):
        make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        record = IngestionService(db).process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "60000", "2025-01")],
            collections=[collection_row("D1", AE, "60000", "2025-01")],
        ))

        assert record.status == UploadStatus.COMPLETED
        assert record.message == "Monthly data processed successfully"
        assert record.recalculated_months == ["2025-01"]
        assert ledger(db, AE) == [
            ("2025-01", "2025-01", PayoutKind.BASE, D("0.02"), D("60000"), D("1200")),
        ]

    def test_recruiter_scenario(self, db):
        make_payee(db, REC, PayeeClass.RECRUITER, **RECRUITER)
        IngestionService(db).process_batch(upload(
            PayeeClass.RECRUITER,
            collections=[collection_row("D1", REC, "45000", "2025-01")],
        ))

        payouts = payouts_for(db, REC)
        assert [(p.payout_month, p.kind, p.amount) for p in payouts] == [
            ("2025-01", PayoutKind.BASE, D("1350.00")),
            ("2025-02", PayoutKind.TIER_BONUS, D("300.00")),
        ]
        assert all(p.source_month == "2025-01" for p in payouts)

    def test_recruitment_manager_bonus_is_deferred(self, db):
        make_payee(db, RM, PayeeClass.RECRUITMENT_MANAGER, **RECRUITMENT_MANAGER)
        IngestionService(db).process_batch(upload(
            PayeeClass.RECRUITMENT_MANAGER,
            invoices=[invoice_row("D1", RM, "120000", "2025-01")],
            collections=[collection_row("D1", RM, "50000", "2025-01")],
        ))

        payouts = payouts_for(db, RM)
        assert [(p.payout_month, p.kind, p.amount) for p in payouts] == [
            ("2025-01", PayoutKind.BASE, D("500.00")),
            ("2025-02", PayoutKind.TIER_BONUS, D("125.00")),
        ]
        assert all(p.collection_id is not None for p in payouts)

    def test_later_collection_uses_invoice_month_tier(self, db):
        make_payee(db, RM, PayeeClass.RECRUITMENT_MANAGER, **RECRUITMENT_MANAGER)
        service = IngestionService(db)
        service.process_batch(upload(
            PayeeClass.RECRUITMENT_MANAGER,
            invoices=[invoice_row("D1", RM, "160000", "2025-01")],
        ))
        service.process_batch(upload(
            PayeeClass.RECRUITMENT_MANAGER,
            collections=[collection_row("D1", RM, "40000", "2025-02")],
        ))

        bonus = [p for p in payouts_for(db, RM) if p.kind == PayoutKind.TIER_BONUS]
        assert len(bonus) == 1
        assert bonus[0].source_month == "2025-02"
        assert bonus[0].payout_month == "2025-03"
        assert bonus[0].commission_rate == D("0.005")
        assert bonus[0].amount == D("200.00")

    def test_domestic_account_manager(self, db):
        make_payee(
            db, AM, PayeeClass.ACCOUNT_MANAGER,
            is_american=True, american_rate="0.02", deal_owner_rate="0.01",
        )
        IngestionService(db).process_batch(upload(
            PayeeClass.ACCOUNT_MANAGER,
            invoices=[invoice_row("D1", AM, "20000", "2025-01", is_deal_owner=True)],
            collections=[collection_row("D1", AM, "10000", "2025-01")],
        ))

        assert [(p.payout_month, p.kind, p.amount) for p in payouts_for(db, AM)] == [
            ("2025-01", PayoutKind.BASE, D("200.00")),
            ("2025-01", PayoutKind.DEAL_OWNER_BONUS, D("100.00")),
        ]

    def test_non_domestic_account_manager_defers_bonuses(self, db):
        make_payee(
            db, AM, PayeeClass.ACCOUNT_MANAGER,
            base_rate="0.01", tier1_rate="0.0025", tier1_threshold="10000", deal_owner_rate="0.01",
        )
        IngestionService(db).process_batch(upload(
            PayeeClass.ACCOUNT_MANAGER,
            invoices=[invoice_row("D1", AM, "20000", "2025-01", is_deal_owner=True)],
            collections=[collection_row("D1", AM, "10000", "2025-01")],
        ))

        payouts = {p.kind: p for p in payouts_for(db, AM)}
        assert payouts[PayoutKind.BASE].payout_month == "2025-01"
        assert payouts[PayoutKind.TIER_BONUS].payout_month == "2025-02"
        assert payouts[PayoutKind.TIER_BONUS].amount == D("25.00")
        assert payouts[PayoutKind.DEAL_OWNER_BONUS].payout_month == "2025-02"
        assert payouts[PayoutKind.DEAL_OWNER_BONUS].amount == D("100.00")

    def test_empty_batch(self, db):
        record = IngestionService(db).process_batch(upload(PayeeClass.RECRUITER))
        assert record.status == UploadStatus.COMPLETED
        assert record.message == "No data to process."
        assert record.month is None
        assert db.query(Payout).count() == 0

    def test_reupload_is_idempotent(self, db):
        make_payee(db, REC, PayeeClass.RECRUITER, **RECRUITER)
        batch = upload(
            PayeeClass.RECRUITER,
            invoices=[invoice_row("D1", REC, "50000", "2025-01")],
            collections=[collection_row("D1", REC, "45000", "2025-01")],
        )
        service = IngestionService(db)
        service.process_batch(batch)
        first = ledger(db, REC)

        service.process_batch(batch)

        assert ledger(db, REC) == first
        assert db.query(Invoice).count() == 1
        assert db.query(MonthlySummary).count() == 1

    def test_reupload_replaces_month(self, db):
        make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        service = IngestionService(db)
        service.process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            collections=[collection_row("D1", AE, "60000", "2025-01")],
        ))
        service.process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            collections=[collection_row("D1", AE, "10000", "2025-01")],
        ))

        assert [p.amount for p in payouts_for(db, AE)] == [D("100.00")]

    def test_forward_propagation_recomputes_later_months(self, db):
        make_payee(db, REC, PayeeClass.RECRUITER, **RECRUITER)
        service = IngestionService(db)
        service.process_batch(upload(PayeeClass.RECRUITER, collections=[collection_row("D1", REC, "20000", "2025-01")]))
        service.process_batch(upload(PayeeClass.RECRUITER, collections=[collection_row("D2", REC, "5000", "2025-02")]))
        feb = [p for p in payouts_for(db, REC) if p.source_month == "2025-02"]
        assert feb[0].commission_rate == D("0.02")

        record = service.process_batch(
            upload(PayeeClass.RECRUITER, collections=[collection_row("D1", REC, "35000", "2025-01")])
        )

        assert record.recalculated_months == ["2025-01", "2025-02"]
        feb = [p for p in payouts_for(db, REC) if p.source_month == "2025-02"]
        assert feb[0].commission_rate == D("0.03")
        assert feb[0].amount == D("150.00")

    def test_without_forward_propagation_later_months_are_left(self, db):
        make_payee(db, REC, PayeeClass.RECRUITER, **RECRUITER)
        service = IngestionService(db, Settings(FORWARD_PROPAGATION=False))
        service.process_batch(upload(PayeeClass.RECRUITER, collections=[collection_row("D1", REC, "20000", "2025-01")]))
        service.process_batch(upload(PayeeClass.RECRUITER, collections=[collection_row("D2", REC, "5000", "2025-02")]))

        record = service.process_batch(
            upload(PayeeClass.RECRUITER, collections=[collection_row("D1", REC, "35000", "2025-01")])
        )

        assert record.recalculated_months == ["2025-01"]
        feb = [p for p in payouts_for(db, REC) if p.source_month == "2025-02"]
        assert feb[0].commission_rate == D("0.02")


    def test_reupload_recalculates_inactive_payee(self, db):
        payee = make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        service = IngestionService(db)
        service.process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "60000", "2025-01")],
            collections=[collection_row("D1", AE, "60000", "2025-01")],
        ))
        payee.is_active = False
        db.commit()

        service.process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "1000", "2025-01")],
            collections=[collection_row("D1", AE, "1000", "2025-01")],
        ))

        summary = _summary(db, AE, "2025-01")
        assert summary.total_invoiced == D("1000")
        assert summary.total_collections == D("1000")
        assert [(p.amount, p.commission_rate) for p in payouts_for(db, AE)] == [(D("10.00"), D("0.01"))]


class TestAdjustments:
    def _seed(self, db):
        make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        service = IngestionService(db)
        service.process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "10000", "2025-01")],
            collections=[collection_row("D1", AE, "10000", "2025-01")],
        ))
        return service

    def _correction(self):
        return upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "-3000", "2025-03")],
        )

    def test_correction_decrements_original_and_recomputes_range(self, db):
        service = self._seed(db)
        record = service.process_batch(self._correction())

        assert _invoice(db, AE, "D1").amount_invoiced == D("7000")
        assert _invoice(db, AE, "D1").month == "2025-01"
        assert record.recalculated_months == ["2025-01", "2025-02", "2025-03"]
        assert record.adjustment_rows == 1
        assert _summary(db, AE, "2025-01").total_invoiced == D("7000")

    def test_gap_month_gets_zero_summary_and_no_payouts(self, db):
        service = self._seed(db)
        service.process_batch(self._correction())

        feb = _summary(db, AE, "2025-02")
        assert feb is not None
        assert feb.total_invoiced == 0 and feb.total_collections == 0
        assert [p for p in payouts_for(db, AE) if p.source_month == "2025-02"] == []

    def test_reuploading_the_correction_month_is_idempotent(self, db):
        service = self._seed(db)
        service.process_batch(self._correction())
        service.process_batch(self._correction())

        assert _invoice(db, AE, "D1").amount_invoiced == D("7000")
        assert db.query(InvoiceAdjustment).count() == 1

    def test_reuploading_the_original_month_keeps_the_correction(self, db):
        service = self._seed(db)
        service.process_batch(self._correction())
        service.process_batch(upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "10000", "2025-01")],
            collections=[collection_row("D1", AE, "10000", "2025-01")],
        ))

        assert _invoice(db, AE, "D1").amount_invoiced == D("7000")

    def test_correction_drops_tier_bonus_of_later_collection(self, db):
        make_payee(db, RM, PayeeClass.RECRUITMENT_MANAGER, **RECRUITMENT_MANAGER)
        service = IngestionService(db)
        service.process_batch(upload(
            PayeeClass.RECRUITMENT_MANAGER,
            invoices=[invoice_row("D1", RM, "100000", "2025-01")],
        ))
        service.process_batch(upload(
            PayeeClass.RECRUITMENT_MANAGER,
            collections=[collection_row("D1", RM, "50000", "2025-02")],
        ))
        assert _payouts_from(db, RM, "2025-02") == [
            (PayoutKind.BASE, D("500.00")),
            (PayoutKind.TIER_BONUS, D("125.00")),
        ]

        record = service.process_batch(upload(
            PayeeClass.RECRUITMENT_MANAGER,
            invoices=[invoice_row("D1", RM, "-10000", "2025-03")],
        ))

        assert record.recalculated_months == ["2025-01", "2025-02", "2025-03"]
        assert _invoice(db, RM, "D1").amount_invoiced == D("90000")
        assert _payouts_from(db, RM, "2025-02") == [(PayoutKind.BASE, D("500.00"))]

    def test_dangling_correction_fails_the_batch(self, db):
        service = self._seed(db)
        batch = upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[
                invoice_row("D2", AE, "5000", "2025-03"),
                invoice_row("NOPE", AE, "-500", "2025-03"),
            ],
        )

        with pytest.raises(DanglingAdjustmentError) as exc:
            service.process_batch(batch)

        assert str(exc.value).startswith('Adjustment failed: The original deal with ID "NOPE"')
        assert db.query(Invoice).filter(Invoice.month == "2025-03").count() == 0
        failed = db.query(UploadBatch).filter(UploadBatch.status == UploadStatus.FAILED).one()
        assert failed.month == "2025-03"
        assert "NOPE" in failed.message


class TestValidation:
    def test_multi_month_batch_is_recorded_as_failed(self, db):
        make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        batch = upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "100", "2025-01"), invoice_row("D2", AE, "100", "2025-02")],
        )
        with pytest.raises(MultiMonthUploadError):
            IngestionService(db).process_batch(batch)

        failed = db.query(UploadBatch).one()
        assert failed.status == UploadStatus.FAILED
        assert failed.month is None
        assert db.query(Invoice).count() == 0

    def test_unknown_payee_rejected(self, db):
        batch = upload(PayeeClass.RECRUITER, collections=[collection_row("D1", REC, "100", "2025-01")])
        with pytest.raises(UnknownPayeeError) as exc:
            IngestionService(db).process_batch(batch)
        assert REC in str(exc.value)
        assert db.query(PayeeConfig).count() == 0

    def test_unknown_payee_auto_provisioned(self, db):
        batch = upload(PayeeClass.RECRUITER, collections=[collection_row("D1", REC, "45000", "2025-01")])
        IngestionService(db, Settings(AUTO_PROVISION_PAYEES=True)).process_batch(batch)

        payee = db.query(PayeeConfig).filter(PayeeConfig.email == REC).one()
        assert payee.payee_class == PayeeClass.RECRUITER
        assert payee.base_rate == D("0.02")
        assert sum(p.amount for p in payouts_for(db, REC)) == D("1650.00")

    def test_payee_of_another_class_rejected(self, db):
        make_payee(db, REC, PayeeClass.RECRUITER, **RECRUITER)
        batch = upload(PayeeClass.ACCOUNT_EXECUTIVE, collections=[collection_row("D1", REC, "100", "2025-01")])
        with pytest.raises(PayeeClassMismatchError):
            IngestionService(db).process_batch(batch)

    def test_duplicate_deal_in_batch_rejected(self, db):
        make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        batch = upload(
            PayeeClass.ACCOUNT_EXECUTIVE,
            invoices=[invoice_row("D1", AE, "100", "2025-01"), invoice_row("D1", AE, "200", "2025-01")],
        )
        with pytest.raises(DuplicateDealError):
            IngestionService(db).process_batch(batch)

    def test_deal_invoiced_in_another_month_rejected(self, db):
        make_payee(db, AE, PayeeClass.ACCOUNT_EXECUTIVE, **ACCOUNT_EXECUTIVE)
        service = IngestionService(db)
        service.process_batch(upload(PayeeClass.ACCOUNT_EXECUTIVE, invoices=[invoice_row("D1", AE, "100", "2025-01")]))
        with pytest.raises(DuplicateDealError) as exc:
            service.process_batch(upload(
                PayeeClass.ACCOUNT_EXECUTIVE, invoices=[invoice_row("D1", AE, "100", "2025-02")],
            ))
        assert "2025-01" in str(exc.value)
