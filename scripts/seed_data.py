from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from academy_ledger.domain.billing import BillingFrequency, EnrollmentStatus, ServiceCode
from academy_ledger.infrastructure.db.models import (
    Enrollment,
    EventOrder,
    Family,
    Service,
    Student,
    Teacher,
    TeacherAssignment,
)
from academy_ledger.infrastructure.db.session import SessionLocal

SEED_START = date(2026, 1, 5)


def create_service_if_missing(
    db: Session,
    code: str,
    name: str,
    billing_frequency: BillingFrequency,
    default_teacher_rate: Decimal | None = None,
    default_customer_rate: Decimal | None = None,
) -> Service:
    service = db.execute(select(Service).where(Service.code == code)).scalar_one_or_none()
    if service is not None:
        return service

    service = Service(
        code=code,
        name=name,
        billing_frequency=billing_frequency,
        default_teacher_rate=default_teacher_rate,
        default_customer_rate=default_customer_rate,
    )
    db.add(service)
    db.flush()
    return service


def create_family_if_missing(db: Session, display_name: str, email: str, contact_name: str) -> Family:
    family = db.execute(select(Family).where(Family.display_name == display_name)).scalar_one_or_none()
    if family is not None:
        return family

    family = Family(display_name=display_name, primary_email=email, primary_contact_name=contact_name)
    db.add(family)
    db.flush()
    return family


def create_student_if_missing(db: Session, family_id: int, full_name: str) -> Student:
    student = db.execute(
        select(Student).where(Student.family_id == family_id, Student.full_name == full_name)
    ).scalar_one_or_none()
    if student is not None:
        return student

    student = Student(family_id=family_id, full_name=full_name)
    db.add(student)
    db.flush()
    return student


def create_teacher_if_missing(db: Session, display_name: str, email: str, default_hourly_rate: Decimal) -> Teacher:
    teacher = db.execute(select(Teacher).where(Teacher.display_name == display_name)).scalar_one_or_none()
    if teacher is not None:
        return teacher

    teacher = Teacher(display_name=display_name, email=email, default_hourly_rate=default_hourly_rate)
    db.add(teacher)
    db.flush()
    return teacher


def create_enrollment_if_missing(db: Session, student: Student, service: Service, **rates) -> Enrollment:
    enrollment = db.execute(
        select(Enrollment).where(Enrollment.student_id == student.id, Enrollment.service_id == service.id)
    ).scalar_one_or_none()
    if enrollment is not None:
        return enrollment

    enrollment = Enrollment(
        family_id=student.family_id,
        student_id=student.id,
        service_id=service.id,
        status=EnrollmentStatus.active,
        start_date=SEED_START,
        **rates,
    )
    db.add(enrollment)
    db.flush()
    return enrollment


def create_assignment_if_missing(
    db: Session,
    teacher: Teacher,
    enrollment: Enrollment | None = None,
    service: Service | None = None,
    hourly_rate_teacher: Decimal | None = None,
    hours_per_week: Decimal | None = None,
) -> TeacherAssignment:
    query = select(TeacherAssignment).where(TeacherAssignment.teacher_id == teacher.id)
    if enrollment is not None:
        query = query.where(TeacherAssignment.enrollment_id == enrollment.id)
    else:
        query = query.where(TeacherAssignment.service_id == service.id, TeacherAssignment.enrollment_id.is_(None))
    assignment = db.execute(query).scalar_one_or_none()
    if assignment is not None:
        return assignment

    assignment = TeacherAssignment(
        teacher_id=teacher.id,
        enrollment_id=enrollment.id if enrollment is not None else None,
        service_id=service.id if service is not None else None,
        hourly_rate_teacher=hourly_rate_teacher,
        hours_per_week=hours_per_week,
        start_date=SEED_START,
        is_active=True,
    )
    db.add(assignment)
    db.flush()
    return assignment


def create_event_order_if_missing(db: Session, family: Family, event_title: str, total_cents: int) -> None:
    existing = db.execute(
        select(EventOrder).where(EventOrder.family_id == family.id, EventOrder.event_title == event_title)
    ).scalar_one_or_none()
    if existing is not None:
        return
    db.add(
        EventOrder(
            family_id=family.id,
            event_title=event_title,
            event_type="event",
            event_date=date(2026, 2, 14),
            total_cents=total_cents,
            payment_status="pending",
        )
    )


def main() -> None:
    db = SessionLocal()
    try:
        coaching = create_service_if_missing(
            db=db,
            code=ServiceCode.academic_coaching,
            name="Academic Coaching",
            billing_frequency=BillingFrequency.weekly,
            default_teacher_rate=Decimal("35.00"),
        )
        pod = create_service_if_missing(
            db=db,
            code=ServiceCode.learning_pod,
            name="Learning Pod",
            billing_frequency=BillingFrequency.monthly,
            default_teacher_rate=Decimal("30.00"),
        )
        front_desk = create_service_if_missing(
            db=db,
            code="front_desk",
            name="Front Desk",
            billing_frequency=BillingFrequency.monthly,
            default_teacher_rate=Decimal("20.00"),
        )

        smith = create_family_if_missing(
            db=db, display_name="Smith Family", email="smith@example.com", contact_name="Pat Smith"
        )
        garcia = create_family_if_missing(
            db=db, display_name="Garcia Family", email="garcia@example.com", contact_name="Lu Garcia"
        )
        ava = create_student_if_missing(db=db, family_id=smith.id, full_name="Ava Smith")
        ben = create_student_if_missing(db=db, family_id=smith.id, full_name="Ben Smith")
        mia = create_student_if_missing(db=db, family_id=garcia.id, full_name="Mia Garcia")

        alice = create_teacher_if_missing(
            db=db, display_name="Alice Tutor", email="alice@example.com", default_hourly_rate=Decimal("32.00")
        )
        omar = create_teacher_if_missing(
            db=db, display_name="Omar Coach", email="omar@example.com", default_hourly_rate=Decimal("28.00")
        )

        ava_coaching = create_enrollment_if_missing(
            db, ava, coaching, hours_per_week=Decimal("4"), hourly_rate_customer=Decimal("60.00")
        )
        mia_coaching = create_enrollment_if_missing(
            db, mia, coaching, hours_per_week=Decimal("2.5"), hourly_rate_customer=Decimal("55.00")
        )
        ben_pod = create_enrollment_if_missing(db, ben, pod, monthly_rate=Decimal("450.00"), class_title="Pod B")

        create_assignment_if_missing(
            db=db,
            teacher=alice,
            enrollment=ava_coaching,
            hourly_rate_teacher=Decimal("40.00"),
            hours_per_week=Decimal("4"),
        )
        create_assignment_if_missing(db=db, teacher=omar, enrollment=mia_coaching, hours_per_week=Decimal("2.5"))
        create_assignment_if_missing(db=db, teacher=omar, enrollment=ben_pod, hours_per_week=Decimal("6"))
        create_assignment_if_missing(db=db, teacher=alice, service=front_desk)

        create_event_order_if_missing(db=db, family=garcia, event_title="Spring Showcase", total_cents=4500)

        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    main()
