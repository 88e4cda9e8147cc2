"""Employee directory lookups used by request validation and reports."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leave_engine.common.exceptions import NotFoundException
from leave_engine.directory.models import Department, Employee
from leave_engine.directory.schemas import EmployeeBrief


class EmployeeDirectory:
    """Name/department lookups; the engine never writes to the directory."""

    @staticmethod
    def _brief(emp: Employee) -> EmployeeBrief:
        return EmployeeBrief(
            id=emp.id,
            employee_code=emp.employee_code,
            full_name=emp.full_name,
            email=emp.email,
            department=emp.department.name if emp.department else None,
        )

    @staticmethod
    async def require_active(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeBrief:
        """Return the employee or raise NotFoundException if missing/inactive."""
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id, Employee.is_active.is_(True))
            .options(selectinload(Employee.department))
        )
        emp = result.scalars().first()
        if emp is None:
            raise NotFoundException("Employee", str(employee_id))
        return EmployeeDirectory._brief(emp)

    @staticmethod
    async def lookup(
        db: AsyncSession,
        employee_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, EmployeeBrief]:
        ids = set(employee_ids)
        if not ids:
            return {}
        result = await db.execute(
            select(Employee)
            .where(Employee.id.in_(ids))
            .options(selectinload(Employee.department))
        )
        return {emp.id: EmployeeDirectory._brief(emp) for emp in result.scalars().all()}

    @staticmethod
    async def ids_in_department(db: AsyncSession, department: str) -> list[uuid.UUID]:
        """Employee ids whose department name matches (case-insensitive)."""
        result = await db.execute(
            select(Employee.id)
            .join(Department, Employee.department_id == Department.id)
            .where(Department.name.ilike(department))
        )
        return [row[0] for row in result.all()]

    @staticmethod
    async def scope_ids(
        db: AsyncSession,
        *,
        department: Optional[str] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> Optional[set[uuid.UUID]]:
        """Resolve a report scope to employee ids; ``None`` means everyone."""
        if department is None and employee_id is None:
            return None
        ids: Optional[set[uuid.UUID]] = None
        if department is not None:
            ids = set(await EmployeeDirectory.ids_in_department(db, department))
        if employee_id is not None:
            ids = {employee_id} if ids is None else ids & {employee_id}
        return ids
