"""
Record Schemas for the Coaching Institute backend

Each Pydantic model describes what a caller may supply when creating a record
in one collection. Server-managed fields (id, creation timestamps, the batch
enrollment counter) are not part of these models; the store adds them.
"""
from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime
from decimal import Decimal

AttendanceStatus = Literal["present", "absent", "late"]
RecipientType = Literal["student", "parent", "batch", "teacher"]


class StudentIn(BaseModel):
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    email: str = Field(..., description="Unique contact email")
    phone: str = Field(..., description="Contact phone")
    date_of_birth: Optional[datetime] = Field(None, description="Date of birth")
    address: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    profile_photo: Optional[str] = Field(None, description="Photo URL or path")
    is_active: bool = True


class TeacherIn(BaseModel):
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    email: str = Field(..., description="Unique contact email")
    phone: str = Field(..., description="Contact phone")
    qualification: Optional[str] = None
    experience: Optional[int] = Field(None, ge=0, description="Years of experience")
    specialization: Optional[str] = None
    salary: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    is_active: bool = True


class CourseIn(BaseModel):
    name: str = Field(..., description="Course name")
    description: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0, description="Length in weeks")
    fee: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    is_active: bool = True


class BatchIn(BaseModel):
    name: str = Field(..., description="Batch name")
    course_id: Optional[int] = Field(None, description="ID course")
    teacher_id: Optional[int] = Field(None, description="ID teacher")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: int = Field(30, ge=0, description="Seats available")
    schedule: Optional[str] = Field(None, description="JSON string of class timings")
    is_active: bool = True


class EnrollmentIn(BaseModel):
    student_id: Optional[int] = Field(None, description="ID student")
    batch_id: Optional[int] = Field(None, description="ID batch")
    status: str = Field("active", description="active|completed|dropped")


class ExamIn(BaseModel):
    title: str = Field(..., description="Exam title")
    batch_id: Optional[int] = Field(None, description="ID batch")
    exam_date: Optional[datetime] = None
    total_marks: Optional[int] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0, description="Length in minutes")
    type: Optional[str] = Field(None, description="quiz|midterm|final")
    instructions: Optional[str] = None


class ExamResultIn(BaseModel):
    exam_id: Optional[int] = Field(None, description="ID exam")
    student_id: Optional[int] = Field(None, description="ID student")
    marks_obtained: Optional[int] = Field(None, ge=0)
    grade: Optional[str] = None
    remarks: Optional[str] = None


class AttendanceIn(BaseModel):
    student_id: Optional[int] = Field(None, description="ID student")
    batch_id: Optional[int] = Field(None, description="ID batch")
    date: Optional[datetime] = Field(None, description="Day the attendance was taken")
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = None


class FeeIn(BaseModel):
    student_id: Optional[int] = Field(None, description="ID student")
    batch_id: Optional[int] = Field(None, description="ID batch")
    amount: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    due_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None
    status: str = Field("pending", description="pending|paid|overdue")
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None


class MessageIn(BaseModel):
    recipient_type: Optional[RecipientType] = None
    recipient_id: Optional[int] = Field(None, description="ID of the recipient, not checked")
    subject: Optional[str] = None
    content: Optional[str] = None
    sent_by: Optional[str] = None
    type: Optional[str] = Field(None, description="announcement|reminder|alert")
    status: str = Field("sent", description="sent|delivered|read")


class DashboardMetrics(BaseModel):
    total_students: int
    total_teachers: int
    monthly_revenue: Decimal = Field(Decimal("0"), description="Paid fees in the current month")
    attendance_rate: float = Field(0, ge=0, le=100, description="Percent present this month")
