"""Tests for the reservation engine.

Covers the create preconditions in order, the FIFO queue, the monotonic
status guard and the expiry sweep.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from library_circulation.database.errors import (
    ConflictError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    RepositoryException,
)
from library_circulation.database.reservation_repository import ReservationRepository
from library_circulation.database.schema import Reservation as ReservationDB
from library_circulation.models.enums import MemberStatus, ReservationStatus


@pytest.fixture
def repo(test_db_session, test_config, clock):
    return ReservationRepository(test_db_session, test_config, clock)


class TestCreate:
    def test_reserve_unavailable_book(self, repo, make_book, make_member, clock):
        book = make_book(available_copies=0)
        member = make_member()

        reservation = repo.create(book.id, member.id)

        assert reservation.id.startswith("reservation_")
        assert reservation.status == ReservationStatus.ACTIVE
        assert reservation.reservation_date == clock.now
        assert abs(reservation.expiry_date - (clock.now + timedelta(days=30))) < timedelta(
            seconds=5
        )

    def test_reservation_does_not_touch_copies(self, repo, make_book, make_member):
        book = make_book(total_copies=2, available_copies=0)
        repo.create(book.id, make_member().id)
        assert book.available_copies == 0
        assert book.total_copies == 2

    def test_available_book_cannot_be_reserved(self, repo, make_book, make_member):
        book = make_book(total_copies=2, available_copies=2)

        with pytest.raises(InvalidStateError, match="currently available"):
            repo.create(book.id, make_member().id)

    def test_missing_book(self, repo, make_member):
        with pytest.raises(NotFoundError):
            repo.create("book_missing", make_member().id)

    def test_soft_deleted_book_is_not_found(self, repo, make_book, make_member):
        book = make_book(is_deleted=True)
        with pytest.raises(NotFoundError):
            repo.create(book.id, make_member().id)

    def test_book_checked_before_member(self, repo, make_book):
        """An available book fails before the unknown member is even looked up."""
        book = make_book(available_copies=1)
        with pytest.raises(InvalidStateError):
            repo.create(book.id, "member_missing")

    def test_missing_member(self, repo, make_book):
        with pytest.raises(NotFoundError):
            repo.create(make_book().id, "member_missing")

    @pytest.mark.parametrize("status", [MemberStatus.SUSPENDED, MemberStatus.EXPIRED])
    def test_inactive_member(self, repo, make_book, make_member, status):
        member = make_member(status=status)
        with pytest.raises(InvalidStateError, match=status.value):
            repo.create(make_book().id, member.id)

    def test_duplicate_active_reservation_conflicts(self, repo, make_book, make_member):
        book = make_book()
        member = make_member()
        repo.create(book.id, member.id)

        with pytest.raises(ConflictError):
            repo.create(book.id, member.id)

    def test_can_reserve_again_after_cancel(self, repo, make_book, make_member):
        book = make_book()
        member = make_member()
        first = repo.create(book.id, member.id)
        repo.cancel(first.id)

        second = repo.create(book.id, member.id)
        assert second.id != first.id
        assert second.status == ReservationStatus.ACTIVE

    def test_fourth_reservation_exceeds_limit(self, repo, make_book, make_member):
        member = make_member()
        for _ in range(3):
            repo.create(make_book().id, member.id)

        with pytest.raises(LimitExceededError, match="3"):
            repo.create(make_book().id, member.id)

        assert repo.count_active_for_member(member.id) == 3

    def test_finished_reservations_do_not_count_toward_limit(
        self, repo, make_book, make_member
    ):
        member = make_member()
        reservations = [repo.create(make_book().id, member.id) for _ in range(3)]
        repo.fulfill(reservations[0].id)

        repo.create(make_book().id, member.id)
        assert repo.count_active_for_member(member.id) == 3

    def test_unique_index_rejects_second_active_row(
        self, test_db_session, make_book, make_member, clock
    ):
        """The database itself refuses a duplicate active (book, member) pair."""
        book = make_book()
        member = make_member()
        for n in (1, 2):
            test_db_session.add(
                ReservationDB(
                    id=f"reservation_dup{n}",
                    book_id=book.id,
                    member_id=member.id,
                    reservation_date=clock.now,
                    expiry_date=clock.now + timedelta(days=30),
                    status=ReservationStatus.ACTIVE,
                )
            )

        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_index_violation_surfaces_as_conflict(
        self, repo, make_book, make_member, monkeypatch
    ):
        """A racing duplicate that slips past the lookup is still a conflict."""
        book = make_book()
        member = make_member()
        repo.create(book.id, member.id)
        monkeypatch.setattr(repo, "_find_active", lambda *args: None)

        with pytest.raises(ConflictError, match="already has an active reservation"):
            repo.create(book.id, member.id)

    def test_other_integrity_errors_are_not_reported_as_duplicates(
        self, repo, test_db_session, make_book, make_member, monkeypatch
    ):
        first = repo.create(make_book().id, make_member().id)
        book_id = make_book().id
        member_id = make_member().id
        test_db_session.expunge_all()
        monkeypatch.setattr(
            "library_circulation.database.reservation_repository.generate_id",
            lambda *args: first.id,
        )

        with pytest.raises(RepositoryException) as exc_info:
            repo.create(book_id, member_id)

        assert not isinstance(exc_info.value, ConflictError)


class TestTransitions:
    def test_cancel_active(self, repo, make_book, make_member):
        reservation = repo.create(make_book().id, make_member().id)
        cancelled = repo.cancel(reservation.id)
        assert cancelled.status == ReservationStatus.CANCELLED

    def test_fulfill_active(self, repo, make_book, make_member):
        reservation = repo.create(make_book().id, make_member().id)
        fulfilled = repo.fulfill(reservation.id)
        assert fulfilled.status == ReservationStatus.FULFILLED

    def test_cancel_fulfilled_message(self, repo, make_book, make_member):
        reservation = repo.create(make_book().id, make_member().id)
        repo.fulfill(reservation.id)

        with pytest.raises(InvalidStateError) as exc_info:
            repo.cancel(reservation.id)
        assert str(exc_info.value) == "Cannot cancel a reservation with status 'fulfilled'"

    def test_cancel_twice_fails(self, repo, make_book, make_member):
        reservation = repo.create(make_book().id, make_member().id)
        repo.cancel(reservation.id)

        with pytest.raises(InvalidStateError, match="'cancelled'"):
            repo.cancel(reservation.id)

    @pytest.mark.parametrize("finish", ["cancel", "fulfill", "expire"])
    @pytest.mark.parametrize("action", ["cancel", "fulfill"])
    def test_terminal_states_are_final(
        self, repo, make_book, make_member, clock, finish, action
    ):
        reservation = repo.create(make_book().id, make_member().id)
        if finish == "expire":
            clock.advance(days=31)
            repo.expire_old()
        else:
            getattr(repo, finish)(reservation.id)

        with pytest.raises(InvalidStateError, match=f"Cannot {action} a reservation"):
            getattr(repo, action)(reservation.id)

    def test_missing_reservation(self, repo):
        with pytest.raises(NotFoundError):
            repo.cancel("reservation_missing")
        with pytest.raises(NotFoundError):
            repo.fulfill("reservation_missing")


class TestQueue:
    def test_fifo_order(self, repo, make_book, make_member, clock):
        """Given holds at t1 < t2 < t3 the head is t1 until it leaves, then t2."""
        book = make_book()
        first = repo.create(book.id, make_member().id)
        clock.advance(minutes=5)
        second = repo.create(book.id, make_member().id)
        clock.advance(minutes=5)
        third = repo.create(book.id, make_member().id)

        queue = repo.get_by_book(book.id)
        assert [r.id for r in queue] == [first.id, second.id, third.id]
        assert [r.queue_position for r in queue] == [1, 2, 3]

        assert repo.get_next_in_queue(book.id).id == first.id
        repo.cancel(first.id)
        assert repo.get_next_in_queue(book.id).id == second.id
        repo.fulfill(second.id)
        assert repo.get_next_in_queue(book.id).id == third.id

    def test_same_timestamp_ties_break_on_id(self, repo, make_book, make_member):
        book = make_book()
        reservations = [repo.create(book.id, make_member().id) for _ in range(3)]

        queue = repo.get_by_book(book.id)
        assert [r.id for r in queue] == sorted(r.id for r in reservations)

    def test_queue_excludes_inactive(self, repo, make_book, make_member):
        book = make_book()
        kept = repo.create(book.id, make_member().id)
        dropped = repo.create(book.id, make_member().id)
        repo.cancel(dropped.id)

        assert [r.id for r in repo.get_by_book(book.id)] == [kept.id]

    def test_empty_queue(self, repo, make_book):
        book = make_book()
        assert repo.get_by_book(book.id) == []
        assert repo.get_next_in_queue(book.id) is None

    def test_queue_for_missing_book(self, repo):
        with pytest.raises(NotFoundError):
            repo.get_by_book("book_missing")

    def test_member_history_newest_first(self, repo, make_book, make_member, clock):
        member = make_member()
        older = repo.create(make_book().id, member.id)
        clock.advance(days=1)
        newer = repo.create(make_book().id, member.id)
        repo.cancel(older.id)

        history = repo.get_by_member(member.id)
        assert [r.id for r in history] == [newer.id, older.id]
        assert history[1].status == ReservationStatus.CANCELLED

    def test_member_history_for_missing_member(self, repo):
        with pytest.raises(NotFoundError):
            repo.get_by_member("member_missing")


class TestExpireOld:
    def test_expires_only_past_due(self, repo, make_book, make_member, clock):
        member = make_member()
        old = repo.create(make_book().id, member.id)
        clock.advance(days=10)
        recent = repo.create(make_book().id, member.id)

        clock.advance(days=21)
        result = repo.expire_old()

        assert result.expired_count == 1
        assert repo.require(old.id).status == ReservationStatus.EXPIRED
        assert repo.require(recent.id).status == ReservationStatus.ACTIVE

    def test_sweep_is_idempotent(self, repo, make_book, make_member, clock):
        for _ in range(2):
            repo.create(make_book().id, make_member().id)
        clock.advance(days=31)

        assert repo.expire_old().expired_count == 2
        assert repo.expire_old().expired_count == 0

    def test_finished_reservations_are_left_alone(self, repo, make_book, make_member, clock):
        reservation = repo.create(make_book().id, make_member().id)
        repo.cancel(reservation.id)
        clock.advance(days=31)

        assert repo.expire_old().expired_count == 0
        assert repo.require(reservation.id).status == ReservationStatus.CANCELLED

    def test_expired_hold_frees_a_slot(self, repo, make_book, make_member, clock):
        member = make_member()
        for _ in range(3):
            repo.create(make_book().id, member.id)
        clock.advance(days=31)
        repo.expire_old()

        assert repo.create(make_book().id, member.id).status == ReservationStatus.ACTIVE
