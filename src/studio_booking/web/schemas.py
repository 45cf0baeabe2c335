"""Request bodies for the web API.

Loose client input such as "1" or "true" flags is left to pydantic's lax
mode, so the services only ever see typed values.
"""

import datetime as dt

from pydantic import BaseModel, EmailStr, Field

from ..errors import ValidationError
from ..models.classes import ClassCategory, RecurringSchedule, Schedule, SingleSchedule
from ..models.private_request import RequestStatus
from ..models.user import UserRole


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    role: UserRole = UserRole.CLIENT


class ScheduleFields(BaseModel):
    """Schedule as sent by the admin UI."""

    is_recurring: bool = False
    date: dt.date | None = None
    weekdays: list[int] = Field(default_factory=list)
    start_date: dt.date | None = None
    end_date: dt.date | None = None

    def to_schedule(self) -> Schedule:
        if self.is_recurring:
            if self.start_date is None or self.end_date is None:
                raise ValidationError("A recurring class needs start_date and end_date")
            return RecurringSchedule(
                weekdays=frozenset(self.weekdays),
                start_date=self.start_date,
                end_date=self.end_date,
            )
        if self.date is None:
            raise ValidationError("A single class needs a date")
        return SingleSchedule(date=self.date)


class ClassCreate(ScheduleFields):
    title: str
    category: ClassCategory
    capacity: int = 1
    start_time: dt.time
    duration_minutes: int = 60
    coach_id: str | None = None
    is_public: bool = True


class ClassUpdate(BaseModel):
    title: str | None = None
    category: ClassCategory | None = None
    capacity: int | None = None
    start_time: dt.time | None = None
    duration_minutes: int | None = None
    coach_id: str | None = None
    is_public: bool | None = None
    schedule: ScheduleFields | None = None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True, exclude={"schedule"})
        if self.schedule is not None:
            data["schedule"] = self.schedule.to_schedule()
        return data


class OccurrenceRequest(BaseModel):
    occurrence_date: dt.date


class ClassReinstateRequest(BaseModel):
    skip_user_ids: list[str] = Field(default_factory=list)


class ReserveRequest(BaseModel):
    class_id: str
    occurrence_date: dt.date | None = None
    confirm_overdraft: bool = False


class RosterSyncRequest(BaseModel):
    class_id: str
    occurrence_date: dt.date | None = None
    user_ids: list[str]


class RemoveAttendeeRequest(BaseModel):
    class_id: str
    occurrence_date: dt.date | None = None
    user_id: str


class TemplateCreate(BaseModel):
    name: str
    category: ClassCategory
    classes_included: int
    validity_days: int = 30
    price: float = 0.0
    is_active: bool = True
    live_from: dt.date | None = None
    live_until: dt.date | None = None


class AssignRequest(BaseModel):
    user_id: str
    category: ClassCategory
    template_id: str
    renewal_months: int = 1
    override_balance: bool = False
    auto_renew: bool = True
    amount: float | None = None
    payment_method: str = "n/a"


class BundleCreate(BaseModel):
    name: str
    price: float = 0.0
    group_template_id: str | None = None
    group_months: int | None = None
    private_template_id: str | None = None
    private_months: int | None = None
    is_active: bool = True


class BundleAssignRequest(BaseModel):
    user_id: str
    bundle_id: str
    override_balance: bool = False
    auto_renew: bool = True
    amount: float | None = None
    payment_method: str = "n/a"


class RenewRequest(BaseModel):
    months: int = 1


class DeactivateRequest(BaseModel):
    purge: bool = False


class RenewalUpdate(BaseModel):
    months: int


class AutoRenewUpdate(BaseModel):
    auto_renew: bool


class ClassCountsUpdate(BaseModel):
    group: int | None = None
    private: int | None = None


class UnlimitedUpdate(BaseModel):
    category: ClassCategory
    unlimited: bool


class AttendanceRequest(BaseModel):
    booking_id: str
    status: str
    reason: str | None = None
    notes: str | None = None


class DirectAttendanceRequest(BaseModel):
    class_id: str
    occurrence_date: dt.date | None = None
    user_id: str
    status: str
    reason: str | None = None
    notes: str | None = None


class PrivateRequestCreate(BaseModel):
    requested_date: dt.date
    requested_time: dt.time
    duration_minutes: int = 60


class PrivateRequestResolve(BaseModel):
    status: RequestStatus
    admin_notes: str | None = None
    coach_id: str | None = None
