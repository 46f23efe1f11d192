"""
Dual status check: is a person both an employee and an active student?

Employees come from the local HR roster table; students from the student
registry REST API. Graduates ("egresado") still appear in the registry but
do not count as students.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging_config import logger
from app.models.employee import Employee

GRADUATED_MARKER = "egresado"


@dataclass
class StudentRecord:
    status: Optional[str] = None
    career: Optional[str] = None
    graduated: bool = False


def sanitize_national_id(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def parse_student_payload(payload: Any) -> Optional[StudentRecord]:
    """Registry answers with a list of records; the first one is current"""
    if not isinstance(payload, list) or not payload:
        return None
    first = payload[0] if isinstance(payload[0], dict) else {}
    docent = first.get("docentData") or {}
    status = docent.get("studentStatus")
    return StudentRecord(
        status=status,
        career=docent.get("career") or docent.get("careerName"),
        graduated=bool(status and GRADUATED_MARKER in status.lower()),
    )


class StudentRegistryClient:
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self.base_url = settings.STUDENT_REGISTRY_URL.rstrip("/")
        self.timeout = settings.STUDENT_REGISTRY_TIMEOUT

    async def fetch(self, national_id: str) -> Optional[StudentRecord]:
        """None when the person is not in the registry or the registry is down"""
        url = f"{self.base_url}/student/fileStudent/getStudentAllData/{national_id}"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.TimeoutException:
            logger.warning(f"[StudentRegistry] Timed out after {self.timeout}s")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"[StudentRegistry] Unreachable: {e}")
            return None

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning(f"[StudentRegistry] Returned {response.status_code}")
            return None

        try:
            return parse_student_payload(response.json())
        except ValueError:
            logger.warning("[StudentRegistry] Response was not JSON")
            return None


async def find_employee(db: AsyncSession, national_id: str) -> Optional[Employee]:
    result = await db.execute(
        select(Employee).where(Employee.national_id == national_id, Employee.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def verify_dual_status(
    db: AsyncSession,
    national_id: str,
    registry: StudentRegistryClient,
) -> dict:
    national_id = sanitize_national_id(national_id)
    employee = await find_employee(db, national_id)
    student = await registry.fetch(national_id)

    is_student = student is not None and not student.graduated
    is_employee = employee is not None

    return {
        "national_id": national_id,
        "is_employee": is_employee,
        "is_student": is_student,
        "is_dual": is_employee and is_student,
        "employee_name": employee.full_name if employee else None,
        "department": employee.department if employee else None,
        "student_status": student.status if student else None,
        "career": student.career if student else None,
    }


def get_student_registry() -> StudentRegistryClient:
    return StudentRegistryClient()
