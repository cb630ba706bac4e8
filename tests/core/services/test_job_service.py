"""Tests for JobService."""

import threading
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from core.audit import AuditAction
from core.exceptions import (
    ConcurrentModificationError, InvalidAmountError, InvalidTransitionError,
    JobNotFoundError, MissingRequiredFieldError,
)
from core.models import (
    JobCreate, JobStatus, JobUpdate, OutsourceRequest, PaymentRequest, ReturnRequest, ServiceType,
)
from utils.timezone import now_utc


class TestJobCreate:
    """Tests for JobService.create."""

    def test_starts_received_with_one_history_entry(self, make_job, test_user_id):
        job = make_job()

        assert job.status == JobStatus.RECEIVED
        assert job.user_id == test_user_id
        assert len(job.status_history) == 1
        assert job.status_history[0].status == JobStatus.RECEIVED
        assert job.status_history[0].note == "Job received."
        assert job.balance == Decimal("800")

    def test_intake_note_appended(self, make_job):
        job = make_job(note="Charger left with device")

        assert job.status_history[0].note == "Job received. Charger left with device"

    def test_technician_assigned_at_intake(self, make_job):
        assert make_job().technician is None
        assert make_job(technician="Suresh").technician == "Suresh"

    def test_persisted(self, make_job, job_service):
        job = make_job()

        assert job_service.get_by_id(job.id) == job

    def test_requires_user_context(self, job_service):
        with pytest.raises(RuntimeError):
            job_service.create(JobCreate(customer_name="Nobody", phone="1"))

    def test_home_service_requires_address_and_visit(self, make_job):
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            make_job(service_type="home-service", visit_date=now_utc().isoformat())
        assert exc_info.value.field == "address"

        with pytest.raises(MissingRequiredFieldError) as exc_info:
            make_job(service_type="home-service", address="12 MG Road")
        assert exc_info.value.field == "visit_date"

    def test_home_service_clears_estimated_delivery(self, make_job):
        job = make_job(
            service_type="home-service",
            address="12 MG Road",
            visit_date=(now_utc() + timedelta(days=1)).isoformat(),
            estimated_delivery=date.today().isoformat(),
        )

        assert job.service_type == ServiceType.HOME_SERVICE
        assert job.estimated_delivery is None
        assert job.visit_date is not None

    def test_walk_in_clears_visit_date(self, make_job):
        job = make_job(visit_date=now_utc().isoformat())

        assert job.visit_date is None

    def test_warranty_job_has_zero_amounts(self, make_job):
        job = make_job(is_warranty=True, total_amount="500", advance_amount="100")

        assert job.total_amount == 0
        assert job.advance_amount == 0

    def test_audits_and_publishes(self, make_job, audit, published):
        job = make_job()

        audit.log_change.assert_called_once()
        assert audit.log_change.call_args.kwargs["action"] == AuditAction.CREATE
        assert [type(e).__name__ for e in published] == ["JobCreated"]
        assert published[0].job.id == job.id


class TestCollectPayment:
    """Tests for JobService.collect_payment."""

    def test_full_payment(self, make_job, job_service):
        """total 1000 / advance 200 -> delivered, advance 1000, balance 0."""
        job = make_job(total_amount="1000", advance_amount="200")

        paid = job_service.collect_payment(job.id, PaymentRequest(type="full", mode="Cash"))

        assert paid.status == JobStatus.DELIVERED
        assert paid.total_amount == Decimal("1000")
        assert paid.advance_amount == Decimal("1000")
        assert paid.balance == 0
        assert paid.status_history[-1].note == "Payment collected via Cash"
        assert len(paid.status_history) == len(job.status_history) + 1

    def test_discount_clamped_to_half_balance(self, make_job, job_service):
        """Balance 800, discount 500 -> 400 applied, total and advance 600."""
        job = make_job(total_amount="1000", advance_amount="200")

        paid = job_service.collect_payment(
            job.id, PaymentRequest(type="discount", discount_amount="500", mode="UPI"),
        )

        assert paid.total_amount == Decimal("600")
        assert paid.advance_amount == Decimal("600")
        assert paid.balance == 0
        assert paid.status_history[-1].note == "Payment collected via UPI (Discount: ₹400)"

    def test_clamp_never_exceeds_half_of_odd_cent_balance(self, make_job, job_service):
        """Balance 100.03, discount 90 -> 50.01 applied, not 50.02."""
        job = make_job(total_amount="100.03", advance_amount="0")

        paid = job_service.collect_payment(
            job.id, PaymentRequest(type="discount", discount_amount="90"),
        )

        assert paid.total_amount == Decimal("50.02")
        assert job.total_amount - paid.total_amount <= job.balance / 2
        assert paid.status_history[-1].note == "Payment collected via Cash (Discount: ₹50.01)"

    def test_breakdown_and_warranty_recorded(self, make_job, job_service):
        job = make_job(total_amount="900", advance_amount="0")

        paid = job_service.collect_payment(job.id, PaymentRequest(
            breakdown=[{"description": "Display", "amount": "800"}, {"description": "Labour", "amount": "100"}],
            warranty="3 months on display",
        ))

        assert paid.warranty == "3 months on display"
        assert paid.status_history[-1].note.endswith("Display: ₹800, Labour: ₹100 (Total: ₹900)")

    def test_already_delivered_rejected(self, make_job, job_service):
        job = make_job()
        job_service.collect_payment(job.id, PaymentRequest())

        with pytest.raises(InvalidTransitionError):
            job_service.collect_payment(job.id, PaymentRequest())

    def test_outsourced_job_rejected(self, make_job, job_service, outsource_service):
        job = make_job()
        outsource_service.assign_vendor(job.id, OutsourceRequest(vendor_name="FixIt Co", cost="300"))

        with pytest.raises(InvalidTransitionError):
            job_service.collect_payment(job.id, PaymentRequest())

    def test_illegal_transition_checked_before_amounts(self, make_job, job_service):
        """A closed job reports the transition, not the bad discount."""
        job = make_job()
        job_service.return_order(job.id, ReturnRequest(type="without-repair"))

        with pytest.raises(InvalidTransitionError):
            job_service.collect_payment(job.id, PaymentRequest(type="discount"))

    def test_invalid_discount_leaves_job_untouched(self, make_job, job_service):
        job = make_job()

        with pytest.raises(InvalidAmountError):
            job_service.collect_payment(job.id, PaymentRequest(type="discount", discount_amount="-5"))

        assert job_service.get_by_id(job.id) == job

    def test_unknown_job(self, as_test_user, job_service):
        with pytest.raises(JobNotFoundError):
            job_service.collect_payment(uuid4(), PaymentRequest())

    def test_publishes_delivered(self, make_job, job_service, published):
        job = make_job()

        job_service.collect_payment(job.id, PaymentRequest())

        assert type(published[-1]).__name__ == "JobDelivered"
        assert published[-1].job.status == JobStatus.DELIVERED


class TestReturnOrder:
    """Tests for JobService.return_order."""

    def test_without_repair_total_becomes_advance(self, make_job, job_service):
        """total 1000 / advance 300 -> total 300, balance 0, returned."""
        job = make_job(total_amount="1000", advance_amount="300")

        returned = job_service.return_order(job.id, ReturnRequest(type="without-repair"))

        assert returned.status == JobStatus.RETURNED
        assert returned.total_amount == Decimal("300")
        assert returned.advance_amount == Decimal("300")
        assert returned.balance == 0
        assert returned.status_history[-1].note == "Returned without repair."

    def test_service_charge(self, make_job, job_service):
        """Charge 150 with no advance -> total 150, balance 150."""
        job = make_job(total_amount="1000", advance_amount="0")

        returned = job_service.return_order(
            job.id, ReturnRequest(type="service-charge", service_charge="150"),
        )

        assert returned.status == JobStatus.RETURNED
        assert returned.total_amount == Decimal("150")
        assert returned.balance == Decimal("150")

    def test_service_charge_required(self, make_job, job_service):
        job = make_job()

        with pytest.raises(InvalidAmountError):
            job_service.return_order(job.id, ReturnRequest(type="service-charge"))

    def test_returned_job_is_immutable(self, make_job, job_service):
        job = make_job()
        job_service.return_order(job.id, ReturnRequest(type="without-repair"))

        with pytest.raises(InvalidTransitionError):
            job_service.update(job.id, JobUpdate(issue="Changed my mind"))


class TestJobUpdate:
    """Tests for JobService.update."""

    def test_field_edit_appends_entry_at_same_status(self, make_job, job_service):
        job = make_job()

        updated = job_service.update(job.id, JobUpdate(issue="Screen and battery"))

        assert updated.issue == "Screen and battery"
        assert updated.status == JobStatus.RECEIVED
        assert len(updated.status_history) == 2
        assert updated.status_history[-1].note == "Details updated: issue."

    def test_reassign_technician(self, make_job, job_service):
        job = make_job(technician="Suresh")

        updated = job_service.update(job.id, JobUpdate(technician="Anil"))

        assert updated.technician == "Anil"
        assert job_service.get_by_id(job.id).technician == "Anil"
        assert updated.status_history[-1].note == "Details updated: technician."

    def test_status_change(self, make_job, job_service, published):
        job = make_job()

        updated = job_service.update(job.id, JobUpdate(status="in-progress", note="Bench 2"))

        assert updated.status == JobStatus.IN_PROGRESS
        assert updated.status_history[-1].note == "Bench 2"
        assert type(published[-1]).__name__ == "JobStatusChanged"
        assert published[-1].previous_status == "received"

    def test_illegal_status_change(self, make_job, job_service):
        job = make_job()
        job_service.update(job.id, JobUpdate(status="ready"))

        with pytest.raises(InvalidTransitionError):
            job_service.update(job.id, JobUpdate(status="waiting"))

    def test_cannot_outsource_through_update(self, make_job, job_service):
        job = make_job()

        with pytest.raises(InvalidTransitionError, match="vendor"):
            job_service.update(job.id, JobUpdate(status="outsourced"))

    def test_cannot_leave_outsourced_through_update(self, make_job, job_service, outsource_service):
        job = make_job()
        outsource_service.assign_vendor(job.id, OutsourceRequest(vendor_name="FixIt Co", cost="300"))

        with pytest.raises(InvalidTransitionError):
            job_service.update(job.id, JobUpdate(status="ready"))

    def test_identical_updates_are_each_recorded(self, make_job, job_service):
        job = make_job()

        first = job_service.update(job.id, JobUpdate(model="Galaxy S22"))
        second = job_service.update(job.id, JobUpdate(model="Galaxy S22"))

        assert len(second.status_history) == len(first.status_history) + 1
        assert second.model_dump(exclude={"status_history", "updated_at"}) == \
            first.model_dump(exclude={"status_history", "updated_at"})

    def test_switch_to_home_service_needs_address(self, make_job, job_service):
        job = make_job()

        with pytest.raises(MissingRequiredFieldError):
            job_service.update(job.id, JobUpdate(service_type="home-service"))

    def test_warranty_flag_zeroes_amounts(self, make_job, job_service):
        job = make_job()

        updated = job_service.update(job.id, JobUpdate(is_warranty=True))

        assert updated.total_amount == 0
        assert updated.advance_amount == 0

    def test_stale_write_rejected(self, make_job, job_service):
        job = make_job()
        job_service.update(job.id, JobUpdate(issue="First edit"))

        with pytest.raises(ConcurrentModificationError):
            job_service.update(job.id, JobUpdate(issue="Second edit"), expected_updated_at=job.updated_at)

    def test_matching_version_accepted(self, make_job, job_service):
        job = make_job()

        updated = job_service.update(job.id, JobUpdate(issue="Edit"), expected_updated_at=job.updated_at)

        assert updated.issue == "Edit"

    def test_audits_field_changes(self, make_job, job_service, audit):
        job = make_job()
        audit.reset_mock()

        job_service.update(job.id, JobUpdate(brand="Oppo"))

        before, after = audit.log_job_change.call_args.args
        assert before.brand == "Samsung"
        assert after.brand == "Oppo"
        audit.log_change.assert_not_called()


class TestJobDelete:

    def test_delete(self, make_job, job_service):
        job = make_job()

        assert job_service.delete(job.id) is True
        assert job_service.get_by_id(job.id) is None

    def test_delete_missing_returns_false(self, as_test_user, job_service):
        assert job_service.delete(uuid4()) is False


class TestConcurrency:

    def test_parallel_payments_deliver_once(self, make_job, job_service, test_user_id):
        """Two desks collect the same payment; exactly one succeeds."""
        from utils.user_context import user_context

        job = make_job()
        results = []
        barrier = threading.Barrier(2)

        def collect():
            with user_context(test_user_id):
                barrier.wait()
                try:
                    job_service.collect_payment(job.id, PaymentRequest())
                    results.append("ok")
                except InvalidTransitionError:
                    results.append("rejected")

        threads = [threading.Thread(target=collect) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["ok", "rejected"]
        final = job_service.get_by_id(job.id)
        assert len(final.status_history) == 2

    def test_parallel_edits_each_append_one_entry(self, make_job, job_service, test_user_id):
        from utils.user_context import user_context

        job = make_job()

        def edit(i):
            with user_context(test_user_id):
                job_service.update(job.id, JobUpdate(note=f"edit {i}"))

        threads = [threading.Thread(target=edit, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(job_service.get_by_id(job.id).status_history) == 11


class TestJobReads:

    def test_list_recent_newest_first(self, make_job, job_service):
        first = make_job(customer_name="First")
        second = make_job(customer_name="Second")

        jobs = job_service.list_recent()

        assert [j.id for j in jobs] == [second.id, first.id]

    def test_list_by_status(self, make_job, job_service):
        job = make_job()
        make_job()
        job_service.update(job.id, JobUpdate(status="ready"))

        assert [j.id for j in job_service.list_by_status(JobStatus.READY)] == [job.id]

    def test_search_matches_name_device_phone_and_id(self, make_job, job_service):
        job = make_job(customer_name="Priya Sharma", phone="9123456789", brand="OnePlus", model="9 Pro")
        make_job()

        assert [j.id for j in job_service.search("priya")] == [job.id]
        assert [j.id for j in job_service.search("oneplus")] == [job.id]
        assert [j.id for j in job_service.search("34567")] == [job.id]
        assert [j.id for j in job_service.search(str(job.id)[:8])] == [job.id]
        assert job_service.search("   ") == []

    def test_other_shop_sees_nothing(self, make_job, job_service, test_user_b_id):
        from utils.user_context import user_context

        job = make_job()

        with user_context(test_user_b_id):
            assert job_service.get_by_id(job.id) is None
            assert job_service.list_recent() == []
            with pytest.raises(JobNotFoundError):
                job_service.update(job.id, JobUpdate(issue="hijack"))


class TestCustomerSummaries:

    def test_groups_by_phone(self, make_job, job_service):
        a1 = make_job(customer_name="Ravi", phone="111", total_amount="1000", advance_amount="200")
        a2 = make_job(customer_name="Ravi K", phone="111", total_amount="500", advance_amount="500")
        make_job(customer_name="Sita", phone="222", total_amount="300", advance_amount="0")
        job_service.collect_payment(a1.id, PaymentRequest())

        summaries = {s.phone: s for s in job_service.customer_summaries()}

        ravi = summaries["111"]
        assert ravi.total_jobs == 2
        assert ravi.name == "Ravi K"
        assert ravi.total_spent == Decimal("1500")
        assert ravi.pending_amount == Decimal("0")
        assert ravi.last_visit == a2.created_at
        assert summaries["222"].pending_amount == Decimal("300")
