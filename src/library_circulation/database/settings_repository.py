"""
Settings repository: loan and fine terms per member type.

Lookups are exact. A member type without a row has no loan terms, and the
callers surface that as ``NotFoundError`` rather than guessing defaults.
"""

import logging
from decimal import Decimal

from sqlalchemy import select

from ..models.enums import MemberType
from ..models.settings import SettingsUpdate
from ..models.settings import SystemSetting as SystemSettingModel
from ..observability import trace_repository_operation
from ..policy import LoanPolicy
from .errors import InvalidStateError, NotFoundError
from .schema import SystemSetting as SystemSettingDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[MemberType, dict] = {
    MemberType.STUDENT: {
        "max_books_allowed": 3,
        "loan_duration_days": 14,
        "renewal_limit": 2,
        "fine_per_day": Decimal("0.50"),
        "grace_period_days": 1,
    },
    MemberType.FACULTY: {
        "max_books_allowed": 10,
        "loan_duration_days": 30,
        "renewal_limit": 3,
        "fine_per_day": Decimal("0.25"),
        "grace_period_days": 2,
    },
    MemberType.PUBLIC: {
        "max_books_allowed": 2,
        "loan_duration_days": 14,
        "renewal_limit": 1,
        "fine_per_day": Decimal("1.00"),
        "grace_period_days": 0,
    },
}

_REQUIRED_ON_CREATE = ("max_books_allowed", "loan_duration_days", "renewal_limit", "fine_per_day")


def parse_member_type(value: str | MemberType) -> MemberType:
    """
    Raises:
        NotFoundError: If ``value`` is not a known member type
    """
    try:
        return MemberType(value)
    except ValueError:
        valid = ", ".join(t.value for t in MemberType)
        raise NotFoundError(
            f"Unknown member type '{value}'. Valid types: {valid}"
        ) from None


class SettingsRepository:
    """Repository for the ``system_settings`` table."""

    def __init__(self, session):
        self.session = session

    def _get_row(self, member_type: MemberType) -> SystemSettingDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(SystemSettingDB).where(SystemSettingDB.member_type == member_type)
            ).scalar_one_or_none(),
            "Failed to get system settings",
        )

    def find_all(self) -> list[SystemSettingModel]:
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(SystemSettingDB).order_by(SystemSettingDB.member_type)
            ).scalars().all(),
            "Failed to list system settings",
        )
        return [SystemSettingModel.model_validate(row) for row in rows]

    def find_by_member_type(self, member_type: str | MemberType) -> SystemSettingModel:
        """
        Raises:
            NotFoundError: If the type is unknown or has no settings row
        """
        parsed = parse_member_type(member_type)
        row = self._get_row(parsed)
        if row is None:
            raise NotFoundError(f"No settings configured for member type '{parsed.value}'")
        return SystemSettingModel.model_validate(row)

    def policy_for(self, member_type: str | MemberType) -> LoanPolicy:
        return LoanPolicy.from_setting(self.find_by_member_type(member_type))

    def update(self, member_type: str | MemberType, changes: SettingsUpdate) -> SystemSettingModel:
        """
        Apply a partial update, creating the row if it does not exist.

        Raises:
            NotFoundError: If the member type is unknown
            InvalidStateError: If creating a row without every required field
        """
        parsed = parse_member_type(member_type)
        fields = changes.model_dump(exclude_none=True)

        with trace_repository_operation("settings", "update", "system_settings"):
            row = self._get_row(parsed)
            if row is None:
                missing = [name for name in _REQUIRED_ON_CREATE if name not in fields]
                if missing:
                    raise InvalidStateError(
                        f"Settings for '{parsed.value}' do not exist yet; "
                        f"missing required fields: {', '.join(missing)}"
                    )
                row = SystemSettingDB(member_type=parsed, grace_period_days=0)
                self.session.add(row)
                logger.info("Creating settings for member type %s", parsed.value)

            for name, value in fields.items():
                setattr(row, name, value)

            safe_commit(self.session, "update system settings")
            logger.info("Updated settings for %s: %s", parsed.value, sorted(fields))
            return SystemSettingModel.model_validate(row)

    def seed_defaults(self) -> list[SystemSettingModel]:
        """Insert the default rows for member types that have none. Existing rows are kept."""
        with trace_repository_operation("settings", "seed_defaults", "system_settings"):
            created = []
            for member_type, values in DEFAULT_SETTINGS.items():
                if self._get_row(member_type) is None:
                    self.session.add(SystemSettingDB(member_type=member_type, **values))
                    created.append(member_type.value)
            if created:
                safe_commit(self.session, "seed system settings")
                logger.info("Seeded settings for: %s", ", ".join(created))
            return self.find_all()
