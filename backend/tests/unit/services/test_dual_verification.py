"""
Unit Tests for the employee / student dual status check
"""
import httpx
import pytest

from app.models.employee import Employee
from app.services.dual_verification import (
    StudentRegistryClient,
    parse_student_payload,
    sanitize_national_id,
    verify_dual_status,
)

NATIONAL_ID = "90051534567"


def registry_with(handler) -> StudentRegistryClient:
    return StudentRegistryClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def student(status: str, career: str = "Licenciatura en Matemática"):
    return lambda request: httpx.Response(200, json=[{"docentData": {"studentStatus": status, "career": career}}])


class TestParsing:

    def test_sanitize(self):
        assert sanitize_national_id(" 900515-34567 ") == NATIONAL_ID
        assert sanitize_national_id(None) == ""

    def test_active_student(self):
        record = parse_student_payload([{"docentData": {"studentStatus": "Activo", "career": "Medicina"}}])

        assert record.status == "Activo"
        assert record.career == "Medicina"
        assert record.graduated is False

    def test_graduate(self):
        record = parse_student_payload([{"docentData": {"studentStatus": "Egresado"}}])

        assert record.graduated is True

    @pytest.mark.parametrize("payload", [[], {}, None, "text"])
    def test_not_a_student(self, payload):
        assert parse_student_payload(payload) is None


class TestStudentRegistryClient:

    @pytest.mark.asyncio
    async def test_request_path(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json=[])

        await registry_with(handler).fetch(NATIONAL_ID)

        assert seen == [f"/sigenu-rest/student/fileStudent/getStudentAllData/{NATIONAL_ID}"]

    @pytest.mark.asyncio
    async def test_timeout_is_treated_as_absent(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert await registry_with(handler).fetch(NATIONAL_ID) is None

    @pytest.mark.asyncio
    async def test_server_error_is_treated_as_absent(self):
        assert await registry_with(lambda r: httpx.Response(500)).fetch(NATIONAL_ID) is None


class TestVerifyDualStatus:

    async def _employee(self, db_session):
        db_session.add(Employee(
            national_id=NATIONAL_ID, full_name="Ana Díaz Pérez", department="Informática", position="Adiestrada",
        ))
        await db_session.commit()

    @pytest.mark.asyncio
    async def test_dual(self, db_session):
        await self._employee(db_session)

        result = await verify_dual_status(db_session, NATIONAL_ID, registry_with(student("Activo")))

        assert result["is_employee"] is True
        assert result["is_student"] is True
        assert result["is_dual"] is True
        assert result["employee_name"] == "Ana Díaz Pérez"
        assert result["career"] == "Licenciatura en Matemática"

    @pytest.mark.asyncio
    async def test_graduate_employee_is_not_dual(self, db_session):
        await self._employee(db_session)

        result = await verify_dual_status(db_session, NATIONAL_ID, registry_with(student("Egresado")))

        assert result["is_employee"] is True
        assert result["is_student"] is False
        assert result["is_dual"] is False
        assert result["student_status"] == "Egresado"

    @pytest.mark.asyncio
    async def test_student_only(self, db_session):
        result = await verify_dual_status(db_session, NATIONAL_ID, registry_with(student("Activo")))

        assert result["is_employee"] is False
        assert result["is_student"] is True
        assert result["is_dual"] is False

    @pytest.mark.asyncio
    async def test_inactive_employee_ignored(self, db_session):
        db_session.add(Employee(national_id=NATIONAL_ID, full_name="Baja", is_active=False))
        await db_session.commit()

        result = await verify_dual_status(db_session, NATIONAL_ID, registry_with(lambda r: httpx.Response(200, json=[])))

        assert result["is_employee"] is False
        assert result["is_dual"] is False
