from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from casework.core.exceptions import CaseNotFoundError
from casework.database.models import Case
from casework.repositories.base_repository import BaseRepository
from casework.schemas.case import CaseIntake
from casework.schemas.enums import CaseStatus
from casework.services.processing.transitions import validate_case_transition
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

DERIVED_FIELDS = frozenset({
    "extracted_data",
    "treatment_timeline",
    "damages_calculation",
    "attorney_warnings",
    "extraction_conflicts",
    "aggregation_diagnostics",
    "aggregated_at",
})


class CaseRepository(BaseRepository[Case]):
    """Repository for Case records.

    Status changes go through advance_status() and derived fields through
    replace_derived_fields(); both are single UPDATE statements.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Case)

    async def create_case(self, intake: CaseIntake) -> Case:
        """Create a case in INTAKE status from its intake fields."""
        return await self.create(
            status=CaseStatus.INTAKE.value,
            **intake.model_dump(),
        )

    async def get_or_raise(self, case_id: UUID) -> Case:
        case = await self.get_by_id(case_id)
        if case is None:
            raise CaseNotFoundError(f"Case {case_id} not found")
        return case

    async def advance_status(
        self,
        case_id: UUID,
        expected: CaseStatus,
        new: CaseStatus,
    ) -> bool:
        """Compare-and-set the case status.

        Args:
            case_id: Case ID
            expected: Status the case must currently have
            new: Status to move to

        Returns:
            True if the row was updated, False if the case was not in the
            expected status (another writer got there first)

        Raises:
            InvalidTransitionError: If expected -> new is not an allowed transition
        """
        validate_case_transition(expected, new)
        try:
            result = await self.session.execute(
                update(Case)
                .where(Case.id == case_id, Case.status == CaseStatus(expected).value)
                .values(status=CaseStatus(new).value, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error advancing case {case_id} status: {str(e)}",
                exc_info=True
            )
            raise

        updated = result.rowcount == 1
        if updated:
            LOGGER.info(
                "Case status advanced",
                extra={
                    "case_id": str(case_id),
                    "from_status": CaseStatus(expected).value,
                    "to_status": CaseStatus(new).value,
                }
            )
        return updated

    async def replace_derived_fields(self, case_id: UUID, fields: Dict[str, Any]) -> bool:
        """Overwrite the derived case record in one UPDATE.

        Args:
            case_id: Case ID
            fields: New values; only derived fields are accepted

        Returns:
            True if the case exists and was updated
        """
        unknown = set(fields) - DERIVED_FIELDS
        if unknown:
            raise ValueError(f"Not derived case fields: {sorted(unknown)}")

        result = await self.session.execute(
            update(Case)
            .where(Case.id == case_id)
            .values(**fields, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_status(self, case_id: UUID) -> Optional[CaseStatus]:
        case = await self.get_by_id(case_id)
        return CaseStatus(case.status) if case else None

    async def list_ids_by_status(self, statuses: Iterable[CaseStatus]) -> List[UUID]:
        result = await self.session.execute(
            select(Case.id).where(Case.status.in_([s.value for s in statuses]))
        )
        return list(result.scalars().all())
