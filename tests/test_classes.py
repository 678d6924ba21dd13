"""Class fee-structure binding and class deletion rules."""

import uuid
from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeAssignment
from conftest import create_structure, make_student

CLASSES = "/api/v1/classes"


async def _auto_assign(client: AsyncClient, headers: dict, student, school_class) -> str:
    response = await client.post(
        "/api/v1/fees/auto-assign",
        json={"student_id": str(student.id), "class_id": str(school_class.id)},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()[0]["id"]


@pytest.mark.asyncio
async def test_create_class_with_fee_structures(client: AsyncClient, auth_headers: dict, catalogs: dict) -> None:
    structure = await create_structure(client, auth_headers, catalogs)
    response = await client.post(
        CLASSES,
        json={"name": "9th", "section": "B", "fee_structure_ids": [structure["id"]]},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["display_name"] == "9th - B"
    assert data["fee_structure_ids"] == [structure["id"]]

    fetched = (await client.get(f"/api/v1/fees/structures/{structure['id']}", headers=auth_headers)).json()
    assert [c["display_name"] for c in fetched["classes"]] == ["9th - B"]


@pytest.mark.asyncio
async def test_create_class_rejects_unknown_structure(client: AsyncClient, auth_headers: dict) -> None:
    response = await client.post(
        CLASSES,
        json={"name": "9th", "section": "B", "fee_structure_ids": [str(uuid.uuid4())]},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "One or more fee structures are invalid or inactive"

    listed = await client.get(CLASSES, headers=auth_headers)
    assert listed.json() == []


@pytest.mark.asyncio
async def test_create_duplicate_class_conflicts(client: AsyncClient, auth_headers: dict, school_class) -> None:
    response = await client.post(CLASSES, json={"name": "10th", "section": "A"}, headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_rebinding_class_moves_it_between_structures(
    client: AsyncClient, auth_headers: dict, catalogs: dict, school_class
) -> None:
    old = await create_structure(client, auth_headers, catalogs, class_ids=[school_class.id])
    new = await create_structure(client, auth_headers, catalogs, name="Transport", category="TRANSPORT")

    response = await client.put(
        f"{CLASSES}/{school_class.id}/fee-structures",
        json={"fee_structure_ids": [new["id"]]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["fee_structure_ids"] == [new["id"]]

    old_after = (await client.get(f"/api/v1/fees/structures/{old['id']}", headers=auth_headers)).json()
    new_after = (await client.get(f"/api/v1/fees/structures/{new['id']}", headers=auth_headers)).json()
    assert old_after["classes"] == []
    assert [c["id"] for c in new_after["classes"]] == [str(school_class.id)]


@pytest.mark.asyncio
async def test_delete_class_with_active_students_refused(
    client: AsyncClient, db_session: AsyncSession, tenant, auth_headers: dict, school_class
) -> None:
    await make_student(db_session, tenant, school_class)
    response = await client.delete(f"{CLASSES}/{school_class.id}", headers=auth_headers)
    assert response.status_code == 400
    assert "1 active students" in response.json()["message"]


@pytest.mark.asyncio
async def test_delete_class_with_pending_fees_refused(
    client: AsyncClient, db_session: AsyncSession, tenant, auth_headers: dict, catalogs: dict, school_class
) -> None:
    await create_structure(client, auth_headers, catalogs, class_ids=[school_class.id])
    student = await make_student(db_session, tenant, school_class)
    await _auto_assign(client, auth_headers, student, school_class)
    student.is_active = False
    await db_session.commit()

    response = await client.delete(f"{CLASSES}/{school_class.id}", headers=auth_headers)
    assert response.status_code == 400
    assert "1 pending fee payments" in response.json()["message"]


@pytest.mark.asyncio
async def test_delete_class_cancels_unpaid_overdue_fees(
    client: AsyncClient, db_session: AsyncSession, tenant, auth_headers: dict, catalogs: dict, school_class
) -> None:
    structure = await create_structure(client, auth_headers, catalogs, class_ids=[school_class.id])
    student = await make_student(db_session, tenant, school_class)
    assignment_id = await _auto_assign(client, auth_headers, student, school_class)

    sfa = await db_session.get(FeeAssignment, uuid.UUID(assignment_id))
    sfa.due_date = date.today() - timedelta(days=30)
    sfa.status = "overdue"
    student.is_active = False
    await db_session.commit()

    response = await client.delete(f"{CLASSES}/{school_class.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["cancelled_assignments"] == 1

    await db_session.refresh(sfa)
    assert sfa.status == "cancelled"
    assert sfa.cancellation_reason == "Class 10th - A was deleted"

    assert (await client.get(f"{CLASSES}/{school_class.id}", headers=auth_headers)).status_code == 404
    fetched = (await client.get(f"/api/v1/fees/structures/{structure['id']}", headers=auth_headers)).json()
    assert fetched["classes"] == []
