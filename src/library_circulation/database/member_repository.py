"""Member repository: borrower identity, status and running counters."""

import logging

from sqlalchemy import or_, select

from ..models.enums import MemberStatus
from ..models.member import Member as MemberModel
from ..models.member import MemberCreate
from ..observability import trace_repository_operation
from .errors import DuplicateError
from .repository import BaseRepository, generate_id
from .schema import Member as MemberDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


class MemberRepository(BaseRepository[MemberDB, MemberModel]):
    @property
    def model_class(self) -> type[MemberDB]:
        return MemberDB

    @property
    def response_schema(self) -> type[MemberModel]:
        return MemberModel

    def create(self, member_data: MemberCreate) -> MemberModel:
        """
        Register a member.

        Raises:
            DuplicateError: If the user account or email is already a member
        """
        with trace_repository_operation("member", "create", "members"):
            clash = safe_query(
                self.session,
                lambda s: s.execute(
                    select(MemberDB.id).where(
                        or_(
                            MemberDB.user_id == member_data.user_id,
                            MemberDB.email == member_data.email,
                        )
                    )
                ).first(),
                "Failed to check for existing member",
            )
            if clash is not None:
                raise DuplicateError(
                    f"A member already exists for user {member_data.user_id} or {member_data.email}"
                )

            member = MemberDB(
                id=generate_id(self.session, MemberDB, "member"),
                user_id=member_data.user_id,
                full_name=member_data.full_name,
                email=member_data.email,
                member_type=member_data.member_type,
                status=MemberStatus.ACTIVE,
                books_issued_count=0,
                outstanding_fines=0,
            )
            self.session.add(member)
            safe_commit(self.session, "create member")
            logger.info("Registered member %s (%s)", member.id, member.member_type.value)
            return self._to_response_model(member)

    def get_by_user_id(self, user_id: str) -> MemberModel | None:
        member = safe_query(
            self.session,
            lambda s: s.execute(
                select(MemberDB).where(MemberDB.user_id == user_id)
            ).scalar_one_or_none(),
            "Failed to get member by user ID",
        )
        return self._to_response_model(member) if member else None

    def set_status(self, member_id: str, status: MemberStatus) -> MemberModel:
        """
        Raises:
            NotFoundError: If the member does not exist
        """
        with trace_repository_operation("member", "set_status", "members"):
            member = self._require_db_obj(member_id)
            if member.status != status:
                logger.info(
                    "Member %s status %s -> %s", member_id, member.status.value, status.value
                )
                member.status = status
                safe_commit(self.session, "update member status")
            return self._to_response_model(member)

