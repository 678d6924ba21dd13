"""Fee summaries at school, class, student and comprehensive level."""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.summary_service import collection_rate
from app.core.models import FeeAssignment
from conftest import create_structure, headers_for, make_class, make_student, make_tenant, make_user

SUMMARY = "/api/v1/fees/summary"


@pytest.fixture()
async def fee_book(client: AsyncClient, db_session: AsyncSession, tenant, school_class, auth_headers, catalogs):
    """Two students with a 1000 tuition fee each: one paid in full, one overdue and unpaid."""
    await create_structure(client, auth_headers, catalogs, class_ids=[school_class.id], amount="1000")
    paid_student = await make_student(db_session, tenant, school_class, first_name="Asha", roll_number="1")
    late_student = await make_student(db_session, tenant, school_class, first_name="Ravi", roll_number="2")
    assignments = {}
    for s in (paid_student, late_student):
        response = await client.post(
            "/api/v1/fees/auto-assign",
            json={"student_id": str(s.id), "class_id": str(school_class.id)},
            headers=auth_headers,
        )
        assignments[s.id] = response.json()[0]["id"]

    payment = await client.post(
        "/api/v1/fees/payments",
        json={"fee_assignment_id": assignments[paid_student.id], "amount": "1000", "payment_method": "online"},
        headers=auth_headers,
    )
    assert payment.status_code == 201

    late = await db_session.get(FeeAssignment, uuid.UUID(assignments[late_student.id]))
    late.due_date = date.today() - timedelta(days=5)
    await db_session.commit()
    return {"paid": paid_student, "late": late_student, "late_assignment": late}


def test_collection_rate_rounding() -> None:
    assert collection_rate(Decimal("1"), Decimal("3")) == Decimal("33.33")
    assert collection_rate(Decimal("2"), Decimal("3")) == Decimal("66.67")
    assert collection_rate(Decimal("0"), Decimal("0")) == Decimal("0")


@pytest.mark.asyncio
async def test_school_summary_totals(client: AsyncClient, auth_headers: dict, fee_book: dict) -> None:
    response = await client.get(f"{SUMMARY}/school", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["level"] == "school"
    assert data["total_students"] == 2
    assert data["total_assignments"] == 2
    assert Decimal(data["total_expected"]) == Decimal("2000")
    assert Decimal(data["total_collected"]) == Decimal("1000")
    assert Decimal(data["total_pending"]) == Decimal("0")
    assert Decimal(data["total_overdue"]) == Decimal("1000")
    assert Decimal(data["collection_rate"]) == Decimal("50.00")

    class_row = data["class_wise_summary"]["10th - A"]
    assert class_row["student_count"] == 2
    assert Decimal(class_row["expected"]) == Decimal("2000")
    assert Decimal(class_row["pending"]) == Decimal("0")
    assert Decimal(class_row["overdue"]) == Decimal("1000")
    category = data["category_wise_summary"]["TUITION"]
    assert Decimal(category["pending"]) == Decimal("0")
    assert Decimal(category["overdue"]) == Decimal("1000")

    assert len(data["recent_payments"]) == 1
    assert data["recent_payments"][0]["collected_by"] == "Admin User"
    assert data["recent_payments"][0]["student_name"] == "Asha Rao"


@pytest.mark.asyncio
async def test_summary_does_not_persist_derived_status(
    client: AsyncClient, db_session: AsyncSession, auth_headers: dict, fee_book: dict
) -> None:
    await client.get(f"{SUMMARY}/school", headers=auth_headers)
    late = fee_book["late_assignment"]
    await db_session.refresh(late)
    assert late.status == "pending"


@pytest.mark.asyncio
async def test_school_summary_filters_academic_year(client: AsyncClient, auth_headers: dict, fee_book: dict) -> None:
    response = await client.get(f"{SUMMARY}/school", params={"academic_year": "2030-2031"}, headers=auth_headers)
    data = response.json()
    assert data["total_assignments"] == 0
    assert Decimal(data["collection_rate"]) == Decimal("0")
    assert data["recent_payments"] == []


@pytest.mark.asyncio
async def test_class_summary_lists_students(
    client: AsyncClient, auth_headers: dict, school_class, fee_book: dict
) -> None:
    response = await client.get(f"{SUMMARY}/class/{school_class.id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["class_name"] == "10th - A"
    assert data["total_students"] == 2
    assert Decimal(data["collection_rate"]) == Decimal("50.00")
    by_name = {s["name"]: s for s in data["students"]}
    assert Decimal(by_name["Asha Rao"]["collected"]) == Decimal("1000")
    assert Decimal(data["total_pending"]) == Decimal("0")
    assert Decimal(data["total_overdue"]) == Decimal("1000")
    assert Decimal(by_name["Ravi Rao"]["overdue"]) == Decimal("1000")
    assert Decimal(by_name["Ravi Rao"]["pending"]) == Decimal("0")


@pytest.mark.asyncio
async def test_student_summary_details(client: AsyncClient, auth_headers: dict, fee_book: dict) -> None:
    late = fee_book["late"]
    response = await client.get(f"{SUMMARY}/student/{late.id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["student_name"] == "Ravi Rao"
    assert data["class_name"] == "10th - A"
    assert Decimal(data["collection_rate"]) == Decimal("0")
    detail = data["fee_details"][0]
    assert detail["status"] == "overdue"
    assert detail["category"] == "TUITION"
    assert detail["frequency"] == "monthly"
    assert Decimal(detail["overdue_amount"]) == Decimal("1000")
    assert Decimal(detail["pending_amount"]) == Decimal("1000")
    assert Decimal(data["total_pending"]) == Decimal("0")
    assert Decimal(data["total_overdue"]) == Decimal("1000")
    assert data["payment_history"] == []

    paid = (await client.get(f"{SUMMARY}/student/{fee_book['paid'].id}", headers=auth_headers)).json()
    assert Decimal(paid["collection_rate"]) == Decimal("100.00")
    assert len(paid["payment_history"]) == 1


@pytest.mark.asyncio
async def test_student_summary_without_assignments(
    client: AsyncClient, db_session: AsyncSession, tenant, school_class, auth_headers: dict
) -> None:
    student = await make_student(db_session, tenant, school_class, first_name="Meera")
    data = (await client.get(f"{SUMMARY}/student/{student.id}", headers=auth_headers)).json()
    assert data["message"] == "No fee assignments found for this student"
    assert Decimal(data["total_expected"]) == Decimal("0")


@pytest.mark.asyncio
async def test_cancelled_assignments_are_excluded(
    client: AsyncClient, db_session: AsyncSession, tenant, school_class, auth_headers: dict, fee_book: dict
) -> None:
    third = await make_student(db_session, tenant, school_class, first_name="Kiran", roll_number="3")
    created = await client.post(
        "/api/v1/fees/auto-assign",
        json={"student_id": str(third.id), "class_id": str(school_class.id)},
        headers=auth_headers,
    )
    await client.post(
        f"/api/v1/fees/assignments/{created.json()[0]['id']}/cancel",
        json={"reason": "Withdrawn"},
        headers=auth_headers,
    )
    data = (await client.get(f"{SUMMARY}/school", headers=auth_headers)).json()
    assert data["total_assignments"] == 2
    assert Decimal(data["total_expected"]) == Decimal("2000")


@pytest.mark.asyncio
async def test_comprehensive_summary_covers_active_classes(
    client: AsyncClient, db_session: AsyncSession, tenant, auth_headers: dict, fee_book: dict
) -> None:
    await make_class(db_session, tenant, "9th", "A")
    response = await client.get(f"{SUMMARY}/comprehensive", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["level"] == "comprehensive"
    assert Decimal(data["school"]["total_expected"]) == Decimal("2000")
    classes = {c["class_name"]: c for c in data["classes"]}
    assert set(classes) == {"10th - A", "9th - A"}
    assert classes["9th - A"]["total_students"] == 0


@pytest.mark.asyncio
async def test_generic_summary_dispatch(
    client: AsyncClient, auth_headers: dict, school_class, fee_book: dict
) -> None:
    missing = await client.get(SUMMARY, params={"level": "class"}, headers=auth_headers)
    assert missing.status_code == 400
    assert missing.json()["message"] == "class_id is required for a class summary"

    by_class = await client.get(
        SUMMARY, params={"level": "class", "class_id": str(school_class.id)}, headers=auth_headers
    )
    assert by_class.json()["level"] == "class"

    default = await client.get(SUMMARY, headers=auth_headers)
    assert default.json()["level"] == "school"


@pytest.mark.asyncio
async def test_class_summary_of_other_tenant_not_found(
    client: AsyncClient, db_session: AsyncSession, school_class, fee_book: dict
) -> None:
    other_tenant = await make_tenant(db_session, "Other School")
    other_headers = headers_for(await make_user(db_session, other_tenant, email="other@example.com"))
    response = await client.get(f"{SUMMARY}/class/{school_class.id}", headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unpaid_balance_not_yet_due_counts_as_pending(
    client: AsyncClient, db_session: AsyncSession, tenant, school_class, auth_headers: dict, fee_book: dict
) -> None:
    third = await make_student(db_session, tenant, school_class, first_name="Kiran", roll_number="3")
    await client.post(
        "/api/v1/fees/auto-assign",
        json={"student_id": str(third.id), "class_id": str(school_class.id)},
        headers=auth_headers,
    )
    data = (await client.get(f"{SUMMARY}/school", headers=auth_headers)).json()
    assert Decimal(data["total_pending"]) == Decimal("1000")
    assert Decimal(data["total_overdue"]) == Decimal("1000")
    assert Decimal(data["total_pending"]) + Decimal(data["total_overdue"]) + Decimal(
        data["total_collected"]
    ) == Decimal(data["total_expected"])
    assert Decimal(data["category_wise_summary"]["TUITION"]["pending"]) == Decimal("1000")


@pytest.mark.asyncio
async def test_unresolved_structure_and_student_rows(
    client: AsyncClient, db_session: AsyncSession, tenant, auth_headers: dict, fee_book: dict
) -> None:
    db_session.add_all(
        [
            FeeAssignment(
                tenant_id=tenant.id,
                student_id=fee_book["paid"].id,
                fee_structure_id=uuid.uuid4(),
                academic_year="2024-2025",
                total_amount=Decimal("500"),
                discount_amount=Decimal("0"),
                final_amount=Decimal("500"),
                paid_amount=Decimal("0"),
                due_date=date.today() + timedelta(days=10),
                status="pending",
            ),
            FeeAssignment(
                tenant_id=tenant.id,
                student_id=uuid.uuid4(),
                fee_structure_id=uuid.uuid4(),
                academic_year="2024-2025",
                total_amount=Decimal("700"),
                discount_amount=Decimal("0"),
                final_amount=Decimal("700"),
                paid_amount=Decimal("0"),
                due_date=date.today() + timedelta(days=10),
                status="pending",
            ),
        ]
    )
    await db_session.commit()

    school = (await client.get(f"{SUMMARY}/school", headers=auth_headers)).json()
    assert school["total_assignments"] == 3
    assert Decimal(school["total_expected"]) == Decimal("2500")
    assert Decimal(school["category_wise_summary"]["other"]["pending"]) == Decimal("500")

    student = (await client.get(f"{SUMMARY}/student/{fee_book['paid'].id}", headers=auth_headers)).json()
    orphan = [d for d in student["fee_details"] if d["fee_name"] == "Unknown Fee"]
    assert len(orphan) == 1
    assert orphan[0]["category"] == "other"
    assert orphan[0]["frequency"] == "unknown"
