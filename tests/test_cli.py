"""Tests for the command line entry point."""

from datetime import datetime

import pytest

from library_circulation.cli import build_parser, main
from library_circulation.database.schema import Reservation as ReservationDB
from library_circulation.database.settings_repository import SettingsRepository
from library_circulation.models.enums import ReservationStatus


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_serve_api_options():
    args = build_parser().parse_args(["serve-api", "--host", "0.0.0.0", "--port", "9000"])

    assert args.command == "serve-api"
    assert args.host == "0.0.0.0"
    assert args.port == 9000


def test_init_db_seeds_settings(test_database_url, test_db_session):
    assert main(["--database-url", test_database_url, "init-db", "--seed-settings"]) == 0

    rows = SettingsRepository(test_db_session).find_all()
    assert [row.member_type.value for row in rows] == ["faculty", "public", "student"]


def test_expire_reservations(test_database_url, test_db_session, make_book, make_member, capsys):
    test_db_session.add(
        ReservationDB(
            id="reservation_stale0001",
            book_id=make_book().id,
            member_id=make_member().id,
            reservation_date=datetime(2020, 1, 1, 9, 0),
            expiry_date=datetime(2020, 1, 31, 9, 0),
            status=ReservationStatus.ACTIVE,
        )
    )
    test_db_session.commit()

    assert main(["--database-url", test_database_url, "expire-reservations"]) == 0

    assert "Expired 1 reservation(s)" in capsys.readouterr().out
