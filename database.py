import os
import logging
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, Union
from pydantic import BaseModel, ValidationError
from dotenv import load_dotenv

from schemas import (
    AttendanceIn,
    BatchIn,
    CourseIn,
    DashboardMetrics,
    EnrollmentIn,
    ExamIn,
    ExamResultIn,
    FeeIn,
    MessageIn,
    StudentIn,
    TeacherIn,
)

# Load environment variables if present
load_dotenv()

STRICT_REFERENCES = os.getenv("STRICT_REFERENCES", "").lower() in ("1", "true", "yes")

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Payload = Union[Mapping[str, Any], BaseModel]


class StorageError(Exception):
    """Base exception for record store errors."""


class NotFound(StorageError):
    """No record with the requested id exists in the collection."""

    def __init__(self, collection: str, record_id: int):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id} not found")


class InvalidInput(StorageError):
    """Input rejected before it reached the collection."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)


def _as_dict(data: Payload, partial: bool = False) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=partial)
    return dict(data)


def _in_month(value: Optional[datetime], now: datetime) -> bool:
    if value is None:
        return False
    # aware values are read in the clock's zone, local time for a naive clock
    if value.tzinfo is not None:
        value = value.astimezone(now.tzinfo)
    return value.year == now.year and value.month == now.month


class Collection:
    """
    One entity collection: its records keyed by id and the id counter.

    The counter and the records dict share a lock, so an id is allocated and
    its record inserted in a single step. Records are stored as plain dicts
    and handed out as shallow copies.
    """

    def __init__(
        self,
        name: str,
        schema: Type[BaseModel],
        lookups: Iterable[str] = (),
        unique: Iterable[str] = (),
        references: Optional[Dict[str, str]] = None,
        server_fields: Optional[Callable[[datetime], Record]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.name = name
        self.schema = schema
        self.lookups = tuple(lookups)
        self.unique = tuple(unique)
        self.references = references or {}
        self._server_fields = server_fields
        self._clock = clock
        self._records: Dict[int, Record] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        # Set by MemStorage when referential checks are switched on
        self.resolve: Optional[Callable[[str, int], bool]] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _validate(self, data: Mapping[str, Any]) -> Record:
        try:
            return self.schema.model_validate(data).model_dump()
        except ValidationError as e:
            logger.warning("Rejected %s input: %s", self.name, e.error_count())
            raise InvalidInput(
                f"Invalid {self.name} data",
                e.errors(include_url=False, include_context=False, include_input=False),
            ) from e

    def _check_references(self, doc: Mapping[str, Any]) -> None:
        if self.resolve is None:
            return
        for field, target in self.references.items():
            value = doc.get(field)
            if value is not None and not self.resolve(target, value):
                raise InvalidInput(f"{field}={value} does not match any {target} record")

    def _check_unique(self, doc: Mapping[str, Any], exclude_id: Optional[int] = None) -> None:
        # Caller holds the lock
        for field in self.unique:
            value = doc.get(field)
            for record_id, record in self._records.items():
                if record_id != exclude_id and record.get(field) == value:
                    raise InvalidInput(f"{self.name} with {field}={value!r} already exists")

    def create(self, data: Payload) -> Record:
        doc = self._validate(_as_dict(data))
        self._check_references(doc)
        server = self._server_fields(self._clock()) if self._server_fields else {}
        with self._lock:
            self._check_unique(doc)
            record_id = self._next_id
            self._next_id += 1
            record = {"id": record_id, **doc, **server}
            self._records[record_id] = record
        logger.debug("Created %s %s", self.name, record_id)
        return dict(record)

    def get(self, record_id: int) -> Optional[Record]:
        with self._lock:
            record = self._records.get(record_id)
        return dict(record) if record is not None else None

    def list(self) -> List[Record]:
        with self._lock:
            records = list(self._records.values())
        return [dict(r) for r in records]

    def filter(self, **criteria: Any) -> List[Record]:
        """Equality match on lookup fields, in insertion order."""
        unknown = sorted(set(criteria) - set(self.lookups))
        if unknown:
            raise InvalidInput(f"Cannot filter {self.name} by {', '.join(unknown)}")
        return [r for r in self.list() if all(r.get(k) == v for k, v in criteria.items())]

    def delete(self, record_id: int) -> None:
        with self._lock:
            removed = self._records.pop(record_id, None)
        if removed is not None:
            logger.debug("Deleted %s %s", self.name, record_id)


class StudentLookup:
    def by_student(self, student_id: int) -> List[Record]:
        return self.filter(student_id=student_id)


class BatchLookup:
    def by_batch(self, batch_id: int) -> List[Record]:
        return self.filter(batch_id=batch_id)


class MutableCollection(Collection):
    """Collection whose records can be changed after creation."""

    def update(self, record_id: int, partial: Payload) -> Record:
        """
        Merge the supplied fields onto the stored record.

        Fields outside the schema (id, server-managed timestamps) are ignored.
        The merged record is validated as a whole, so a required field cannot
        be cleared.
        """
        existing = self.get(record_id)
        if existing is None:
            raise NotFound(self.name, record_id)
        fields = {k: v for k, v in _as_dict(partial, partial=True).items() if k in self.schema.model_fields}
        merged = self._validate({**existing, **fields})
        changes = {k: merged[k] for k in fields}
        self._check_references(changes)
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise NotFound(self.name, record_id)
            updated = {**current, **changes}
            self._check_unique(updated, exclude_id=record_id)
            self._records[record_id] = updated
        logger.debug("Updated %s %s: %s", self.name, record_id, sorted(changes))
        return dict(updated)


class BatchCollection(MutableCollection):
    def by_course(self, course_id: int) -> List[Record]:
        return self.filter(course_id=course_id)

    def by_teacher(self, teacher_id: int) -> List[Record]:
        return self.filter(teacher_id=teacher_id)


class EnrollmentCollection(StudentLookup, BatchLookup, Collection):
    pass


class ExamCollection(BatchLookup, MutableCollection):
    pass


class ExamResultCollection(StudentLookup, MutableCollection):
    def by_exam(self, exam_id: int) -> List[Record]:
        return self.filter(exam_id=exam_id)


class AttendanceCollection(StudentLookup, BatchLookup, MutableCollection):
    def by_date(self, day: Union[date, datetime]) -> List[Record]:
        """Records taken on the given calendar day, whatever the time of day."""
        if isinstance(day, datetime):
            day = day.date()
        return [r for r in self.list() if r["date"] is not None and r["date"].date() == day]


class FeeCollection(StudentLookup, MutableCollection):
    pass


class MessageCollection(Collection):
    def by_recipient(self, recipient_type: str, recipient_id: int) -> List[Record]:
        return self.filter(recipient_type=recipient_type, recipient_id=recipient_id)


class MemStorage:
    """
    In-process store for every institute collection.

    Construct one at startup and hand it to whatever serves requests; tests
    build their own. Nothing is persisted across restarts.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, strict_references: Optional[bool] = None):
        self.clock = clock or datetime.now
        self.strict_references = STRICT_REFERENCES if strict_references is None else strict_references
        c = self.clock

        self.students = MutableCollection(
            "students", StudentIn, unique=("email",),
            server_fields=lambda now: {"enrollment_date": now}, clock=c,
        )
        self.teachers = MutableCollection(
            "teachers", TeacherIn, unique=("email",),
            server_fields=lambda now: {"join_date": now}, clock=c,
        )
        self.courses = MutableCollection("courses", CourseIn, clock=c)
        self.batches = BatchCollection(
            "batches", BatchIn, lookups=("course_id", "teacher_id"),
            references={"course_id": "courses", "teacher_id": "teachers"},
            server_fields=lambda now: {"current_enrollment": 0}, clock=c,
        )
        self.enrollments = EnrollmentCollection(
            "enrollments", EnrollmentIn, lookups=("student_id", "batch_id"),
            references={"student_id": "students", "batch_id": "batches"},
            server_fields=lambda now: {"enrollment_date": now}, clock=c,
        )
        self.exams = ExamCollection(
            "exams", ExamIn, lookups=("batch_id",),
            references={"batch_id": "batches"}, clock=c,
        )
        self.exam_results = ExamResultCollection(
            "exam_results", ExamResultIn, lookups=("exam_id", "student_id"),
            references={"exam_id": "exams", "student_id": "students"}, clock=c,
        )
        self.attendance = AttendanceCollection(
            "attendance", AttendanceIn, lookups=("student_id", "batch_id"),
            references={"student_id": "students", "batch_id": "batches"}, clock=c,
        )
        self.fees = FeeCollection(
            "fees", FeeIn, lookups=("student_id",),
            references={"student_id": "students", "batch_id": "batches"}, clock=c,
        )
        # recipient_id may point at a student, teacher or batch, so it is never checked
        self.messages = MessageCollection(
            "messages", MessageIn, lookups=("recipient_type", "recipient_id"),
            server_fields=lambda now: {"sent_at": now}, clock=c,
        )

        if self.strict_references:
            for collection in self.collections.values():
                collection.resolve = self._exists

    @property
    def collections(self) -> Dict[str, Collection]:
        return {
            name: value for name, value in vars(self).items()
            if isinstance(value, Collection)
        }

    def _exists(self, collection_name: str, record_id: int) -> bool:
        return self.collections[collection_name].get(record_id) is not None

    def dashboard_metrics(self) -> DashboardMetrics:
        now = self.clock()

        paid = [
            fee for fee in self.fees.list()
            if fee["status"] == "paid" and _in_month(fee["paid_date"], now)
        ]
        monthly_revenue = sum((fee["amount"] or Decimal("0") for fee in paid), Decimal("0"))

        monthly_attendance = [a for a in self.attendance.list() if _in_month(a["date"], now)]
        present = sum(1 for a in monthly_attendance if a["status"] == "present")
        if monthly_attendance:
            attendance_rate = round(present / len(monthly_attendance) * 100, 2)
        else:
            attendance_rate = 0.0

        return DashboardMetrics(
            total_students=len(self.students),
            total_teachers=len(self.teachers),
            monthly_revenue=monthly_revenue,
            attendance_rate=attendance_rate,
        )
