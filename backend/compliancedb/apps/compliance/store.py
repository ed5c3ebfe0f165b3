from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
import logging
from typing import Iterable, Iterator, List, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from compliancedb.apps.accounts.models import User

from . import models
from .catalog import RequirementDefinition
from .enums import ComplianceStatus, ComplianceTier, PractitionerRole, RequirementWorkflowStatus
from .errors import ConcurrencyConflict, PersistenceError, UserNotFound
from .mapper import map_status

logger = logging.getLogger(__name__)

_REVIEW_STATUSES = {
    RequirementWorkflowStatus.APPROVED,
    RequirementWorkflowStatus.REVISION_REQUIRED,
    RequirementWorkflowStatus.REJECTED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@contextmanager
def _write_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except StaleDataError as exc:
        raise ConcurrencyConflict(
            f"Concurrent update detected during {operation}",
            detail=[{"operation": operation, "error": str(exc)}],
        ) from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(
            f"Store write failed during {operation}",
            detail=[{"operation": operation, "error": str(exc.__class__.__name__)}],
        ) from exc


class ComplianceStore:
    """
    Store adapter the orchestrators talk to.

    Writes flush immediately so version conflicts and constraint errors surface
    at the call site, translated into the engine's error types. Reads retry
    once on OperationalError. Nothing here commits except commit().
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _read(self, operation: str, fn):
        try:
            return fn()
        except OperationalError:
            logger.warning("Store read failed; retrying once", extra={"operation": operation})
            self.db.rollback()
        try:
            return fn()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Store read failed during {operation}",
                detail=[{"operation": operation, "error": str(exc.__class__.__name__)}],
            ) from exc

    # -- users --------------------------------------------------------------

    def get_user(self, user_id: str) -> User:
        user = self._read("get_user", lambda: self.db.query(User).filter(User.id == user_id).first())
        if user is None:
            raise UserNotFound(f"User {user_id} not found", detail=[{"field": "user_id", "value": user_id}])
        return user

    def update_user(self, user: User, **fields) -> User:
        """
        Apply fields and bump the user's version.

        updated_at always changes, so the version check fires even when the
        caller only touches child rows.
        """
        with _write_guard("update_user"):
            for key, value in fields.items():
                setattr(user, key, value)
            user.updated_at = _utcnow()
            self.db.flush()
        return user

    # -- compliance records -------------------------------------------------

    def list_compliance_records(self, user_id: str, *, active_only: bool = False) -> List[models.UserComplianceRecord]:
        def _query():
            query = self.db.query(models.UserComplianceRecord).filter(models.UserComplianceRecord.user_id == user_id)
            if active_only:
                query = query.filter(models.UserComplianceRecord.compliance_status != ComplianceStatus.NOT_APPLICABLE)
            return query.order_by(models.UserComplianceRecord.created_at.asc(), models.UserComplianceRecord.id.asc()).all()

        return self._read("list_compliance_records", _query)

    def get_compliance_record(self, user_id: str, requirement_id: str) -> Optional[models.UserComplianceRecord]:
        return self._read(
            "get_compliance_record",
            lambda: self.db.query(models.UserComplianceRecord)
            .filter(
                models.UserComplianceRecord.user_id == user_id,
                models.UserComplianceRecord.requirement_id == requirement_id,
            )
            .first(),
        )

    def upsert_compliance_record(
        self,
        user_id: str,
        definition: RequirementDefinition,
        *,
        role: PractitionerRole,
        tier: ComplianceTier,
        workflow_status: RequirementWorkflowStatus,
        score: Optional[float] = None,
        notes: Optional[str] = None,
        submission_data: Optional[dict] = None,
        reset: bool = False,
        now: Optional[datetime] = None,
    ) -> models.UserComplianceRecord:
        """
        Insert or update the (user, requirement) row.

        reset=True re-provisions the row: new due date from the catalog offset,
        score/notes/submission/escalation cleared.
        """
        now = now or _utcnow()
        with _write_guard("upsert_compliance_record"):
            record = self.get_compliance_record(user_id, definition.requirement_id)
            if record is None:
                record = models.UserComplianceRecord(user_id=user_id, requirement_id=definition.requirement_id)
                self.db.add(record)
                reset = True

            record.requirement_name = definition.name
            record.role = role
            record.tier = tier
            record.is_mandatory = definition.mandatory
            record.point_value = definition.point_value
            record.workflow_status = workflow_status
            record.compliance_status = map_status(workflow_status)

            if reset:
                record.due_at = now + timedelta(days=definition.due_days_from_assignment)
                record.score = None
                record.notes = None
                record.submission_data = None
                record.submitted_at = None
                record.reviewed_at = None
                record.last_escalation_level = None

            if score is not None:
                record.score = score
            if notes is not None:
                record.notes = notes
            if submission_data is not None:
                record.submission_data = submission_data
            if workflow_status == RequirementWorkflowStatus.SUBMITTED:
                record.submitted_at = now
            if workflow_status in _REVIEW_STATUSES:
                record.reviewed_at = now
            self.db.flush()
        return record

    def set_records_not_applicable(
        self,
        user_id: str,
        requirement_ids: Iterable[str],
        *,
        note: Optional[str] = None,
    ) -> int:
        ids = list(requirement_ids)
        if not ids:
            return 0
        with _write_guard("set_records_not_applicable"):
            records = (
                self.db.query(models.UserComplianceRecord)
                .filter(
                    models.UserComplianceRecord.user_id == user_id,
                    models.UserComplianceRecord.requirement_id.in_(ids),
                    models.UserComplianceRecord.compliance_status != ComplianceStatus.NOT_APPLICABLE,
                )
                .all()
            )
            for record in records:
                record.compliance_status = ComplianceStatus.NOT_APPLICABLE
                if note:
                    record.notes = note
            self.db.flush()
        return len(records)

    def list_due_records(self, *, before: datetime) -> List[models.UserComplianceRecord]:
        """Active, not-yet-compliant records of active users due on or before `before`."""
        return self._read(
            "list_due_records",
            lambda: self.db.query(models.UserComplianceRecord)
            .join(User, User.id == models.UserComplianceRecord.user_id)
            .filter(
                User.is_active.is_(True),
                models.UserComplianceRecord.compliance_status.notin_(
                    [ComplianceStatus.COMPLIANT, ComplianceStatus.NOT_APPLICABLE]
                ),
                models.UserComplianceRecord.due_at.isnot(None),
                models.UserComplianceRecord.due_at <= before,
            )
            .order_by(models.UserComplianceRecord.due_at.asc())
            .all(),
        )

    def set_escalation_level(self, record: models.UserComplianceRecord, level) -> None:
        with _write_guard("set_escalation_level"):
            record.last_escalation_level = level
            self.db.flush()

    # -- tier assignment ----------------------------------------------------

    def get_tier_assignment(self, user_id: str) -> Optional[models.TierAssignment]:
        return self._read("get_tier_assignment", lambda: self.db.get(models.TierAssignment, user_id))

    def save_tier_assignment(
        self,
        user_id: str,
        *,
        tier: ComplianceTier,
        completion_percentage: float,
        advancement_eligible: bool,
        assigned_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.TierAssignment:
        now = now or _utcnow()
        with _write_guard("save_tier_assignment"):
            assignment = self.get_tier_assignment(user_id)
            if assignment is None:
                assignment = models.TierAssignment(user_id=user_id, tier=tier, assigned_at=now, assigned_by=assigned_by)
                self.db.add(assignment)
            elif assignment.tier != tier:
                assignment.tier = tier
                assignment.assigned_at = now
                assignment.assigned_by = assigned_by
            assignment.completion_percentage = completion_percentage
            assignment.advancement_eligible = advancement_eligible
            self.db.flush()
        return assignment

    # -- transaction --------------------------------------------------------

    def commit(self) -> None:
        with _write_guard("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
