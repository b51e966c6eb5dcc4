from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from spa_booking.models import Booking, BookingStatus, TipRecipient
from spa_booking.schemas import BookingStatusUpdate, BookingUpdate
from spa_booking.services import booking_lifecycle
from spa_booking.utils.errors import IllegalTransition, NotFound, ScheduleConflict, ValidationError

from conftest import make_booking, make_service, make_therapist

DAY = date(2030, 7, 1)


def test_pending_to_completed_directly_is_rejected(db):
    service = make_service(db)
    booking = make_booking(db, service, make_therapist(db))

    with pytest.raises(IllegalTransition):
        booking_lifecycle.complete(db, booking.id)

    db.refresh(booking)
    assert booking.status == BookingStatus.PENDING
    assert booking.completed_at is None
    assert booking.commission_amount == 0


def test_confirm_then_complete_populates_completion(db):
    service = make_service(db, price=1000)
    therapist = make_therapist(db)
    booking = make_booking(db, service, therapist)

    booking_lifecycle.confirm(db, booking.id)
    done = booking_lifecycle.complete(db, booking.id)

    assert done.status == BookingStatus.COMPLETED
    assert done.completed_at is not None
    assert done.price_at_booking == Decimal("1000")
    assert done.commission_amount == Decimal("300")
    assert done.revenue_amount == Decimal("700")


def test_commission_rounds_up_to_whole_peso(db):
    service = make_service(db, price=999)
    booking = make_booking(db, service, make_therapist(db), BookingStatus.CONFIRMED)

    done = booking_lifecycle.complete(db, booking.id)

    assert done.commission_amount == Decimal("300")
    assert done.revenue_amount == Decimal("699")


def test_snapshot_price_wins_over_catalog_price(db):
    service = make_service(db, price=1000)
    booking = make_booking(
        db, service, make_therapist(db), BookingStatus.CONFIRMED, price_at_booking=Decimal("800")
    )
    service.price = Decimal("1200")
    db.commit()

    done = booking_lifecycle.complete(db, booking.id)
    assert done.price_at_booking == Decimal("800")
    assert done.commission_amount == Decimal("240")


def test_completion_records_time_and_tip(db):
    service = make_service(db)
    booking = make_booking(db, service, make_therapist(db), BookingStatus.CONFIRMED)
    finished = datetime(2030, 7, 1, 13, 30, tzinfo=timezone.utc)

    done = booking_lifecycle.complete(
        db, booking.id, completed_at=finished, tip_amount=Decimal("200"), tip_recipient=TipRecipient.THERAPIST
    )

    assert done.completed_at == datetime(2030, 7, 1, 13, 30)
    assert done.tip_amount == Decimal("200")
    assert done.tip_recipient == TipRecipient.THERAPIST


def test_tip_without_recipient_is_rejected(db):
    service = make_service(db)
    booking = make_booking(db, service, make_therapist(db), BookingStatus.CONFIRMED)

    with pytest.raises(ValidationError):
        booking_lifecycle.complete(db, booking.id, tip_amount=Decimal("50"))

    db.refresh(booking)
    assert booking.status == BookingStatus.CONFIRMED


def test_confirm_requires_a_therapist(db):
    booking = make_booking(db, make_service(db))

    with pytest.raises(IllegalTransition) as exc:
        booking_lifecycle.confirm(db, booking.id)

    assert "therapist" in exc.value.message.lower()
    db.refresh(booking)
    assert booking.status == BookingStatus.PENDING


def test_assign_and_confirm_in_one_call(db):
    booking = make_booking(db, make_service(db))
    therapist = make_therapist(db)

    confirmed = booking_lifecycle.confirm(db, booking.id, therapist_id=therapist.id)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.therapist_id == therapist.id


def test_assignment_rejected_on_blockout_date(db):
    booking = make_booking(db, make_service(db), booking_date=DAY)
    therapist = make_therapist(db, blockouts=[DAY.isoformat()])

    with pytest.raises(ScheduleConflict):
        booking_lifecycle.confirm(db, booking.id, therapist_id=therapist.id)

    db.refresh(booking)
    assert booking.therapist_id is None
    assert booking.status == BookingStatus.PENDING


def test_assignment_rejected_on_overlap(db):
    service = make_service(db, duration_minutes=60)
    therapist = make_therapist(db)
    make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY, time(18, 30))
    booking = make_booking(db, service, booking_date=DAY, booking_time=time(18, 0))

    with pytest.raises(ScheduleConflict):
        booking_lifecycle.confirm(db, booking.id, therapist_id=therapist.id)


def test_reassign_keeps_status(db):
    service = make_service(db)
    first = make_therapist(db, name="Ana")
    second = make_therapist(db, name="Bea")
    booking = make_booking(db, service, first, BookingStatus.CONFIRMED)

    moved = booking_lifecycle.reassign(db, booking.id, second.id)

    assert moved.status == BookingStatus.CONFIRMED
    assert moved.therapist_id == second.id


def test_same_status_without_change_is_rejected(db):
    booking = make_booking(db, make_service(db))
    with pytest.raises(IllegalTransition):
        booking_lifecycle.apply_status_update(
            db, booking.id, BookingStatusUpdate(status=BookingStatus.PENDING)
        )


def test_cancel_and_restore(db):
    booking = make_booking(db, make_service(db), make_therapist(db), BookingStatus.CONFIRMED)

    assert booking_lifecycle.cancel(db, booking.id).status == BookingStatus.CANCELLED
    restored = booking_lifecycle.restore(db, booking.id)

    assert restored.status == BookingStatus.PENDING
    assert restored.commission_amount == 0


def test_restoring_a_completed_booking_fails(db):
    booking = make_booking(db, make_service(db), make_therapist(db), BookingStatus.CONFIRMED)
    booking_lifecycle.complete(db, booking.id)

    with pytest.raises(IllegalTransition):
        booking_lifecycle.restore(db, booking.id)
    with pytest.raises(IllegalTransition):
        booking_lifecycle.cancel(db, booking.id)

    db.refresh(booking)
    assert booking.status == BookingStatus.COMPLETED


def test_soft_delete_hides_booking_from_transitions(db):
    booking = make_booking(db, make_service(db), make_therapist(db), BookingStatus.COMPLETED)

    archived = booking_lifecycle.soft_delete(db, booking.id)

    assert archived.deleted_at is not None
    assert archived.status == BookingStatus.COMPLETED
    with pytest.raises(NotFound):
        booking_lifecycle.cancel(db, booking.id)
    assert db.query(Booking).count() == 1


def test_status_change_is_logged(db, caplog):
    booking = make_booking(db, make_service(db), make_therapist(db))
    with caplog.at_level("INFO"):
        booking_lifecycle.confirm(db, booking.id)
    assert "status changed from pending to confirmed" in caplog.text


def test_malformed_blockout_is_skipped(db, caplog):
    therapist = make_therapist(db, blockouts=["2030-13-45", "soon", DAY.isoformat()])
    free_day = make_booking(db, make_service(db), booking_date=date(2030, 7, 2))
    blocked_day = make_booking(db, make_service(db), booking_date=DAY)

    with caplog.at_level("WARNING"):
        confirmed = booking_lifecycle.confirm(db, free_day.id, therapist_id=therapist.id)

    assert confirmed.therapist_id == therapist.id
    assert "malformed blockout date" in caplog.text
    with pytest.raises(ScheduleConflict):
        booking_lifecycle.confirm(db, blocked_day.id, therapist_id=therapist.id)


def test_edit_reschedules_and_keeps_status(db):
    service = make_service(db, duration_minutes=60)
    therapist = make_therapist(db)
    booking = make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY, time(18, 0))

    moved = booking_lifecycle.edit_booking(
        db, booking.id, BookingUpdate(booking_date=date(2030, 7, 3), booking_time=time(20, 30))
    )

    assert moved.status == BookingStatus.CONFIRMED
    assert (moved.booking_date, moved.booking_time) == (date(2030, 7, 3), time(20, 30))
    assert moved.therapist_id == therapist.id


def test_edit_does_not_clash_with_itself(db):
    service = make_service(db, duration_minutes=90)
    therapist = make_therapist(db)
    booking = make_booking(db, service, therapist, BookingStatus.PENDING, DAY, time(18, 0))

    moved = booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(booking_time=time(18, 30)))

    assert moved.booking_time == time(18, 30)


def test_edit_rejects_overlap_and_leaves_row(db):
    service = make_service(db, duration_minutes=60)
    therapist = make_therapist(db)
    other = make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY, time(20, 0))
    booking = make_booking(db, service, therapist, BookingStatus.PENDING, DAY, time(17, 0))

    with pytest.raises(ScheduleConflict) as exc:
        booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(booking_time=time(19, 30)))

    assert exc.value.to_detail()["conflicting_booking_ids"] == [other.id]
    db.refresh(booking)
    assert booking.booking_time == time(17, 0)


def test_edit_new_therapist_on_blockout_is_rejected(db):
    booking = make_booking(db, make_service(db), make_therapist(db, name="Ana"), booking_date=DAY)
    bea = make_therapist(db, name="Bea", blockouts=[DAY.isoformat()])

    with pytest.raises(ScheduleConflict):
        booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(therapist_id=bea.id))


def test_edit_service_resnapshots_price(db):
    short = make_service(db, title="Foot Spa", price=600)
    long = make_service(db, title="Hot Stone", price=1500)
    booking = make_booking(db, short, price_at_booking=Decimal("600"))

    edited = booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(service_id=long.id))

    assert edited.service_id == long.id
    assert edited.price_at_booking == Decimal("1500")


def test_edit_guest_fields(db):
    booking = make_booking(db, make_service(db))

    edited = booking_lifecycle.edit_booking(
        db, booking.id, BookingUpdate(guest_name="Lia Cruz", guest_phone="0917 555 1234")
    )
    assert (edited.guest_name, edited.guest_phone) == ("Lia Cruz", "09175551234")

    with pytest.raises(ValidationError) as exc:
        booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(guest_phone="12345"))
    assert "guest_phone" in exc.value.field_errors


def test_confirmed_booking_keeps_its_therapist(db):
    booking = make_booking(db, make_service(db), make_therapist(db), BookingStatus.CONFIRMED)
    with pytest.raises(IllegalTransition):
        booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(therapist_id=None))


@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
def test_closed_bookings_cannot_be_edited(db, status):
    booking = make_booking(db, make_service(db), make_therapist(db), status)

    with pytest.raises(IllegalTransition):
        booking_lifecycle.edit_booking(db, booking.id, BookingUpdate(booking_time=time(21, 0)))

    db.refresh(booking)
    assert booking.booking_time == time(18, 0)


def test_empty_edit_is_rejected(db):
    booking = make_booking(db, make_service(db))
    with pytest.raises(ValidationError):
        booking_lifecycle.edit_booking(db, booking.id, BookingUpdate())
