"""
Profile display data.

The directory ``title`` attribute is free text ("Profesor Auxiliar",
"Investigador Titular", "Estudiante"...). The user type is derived from
keywords in it.
"""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.device_service import count_devices

TEACHER_KEYWORDS = (
    "docente", "profesor", "profesora", "teacher", "faculty", "catedra",
    "catedrático", "catedrática", "enseñanza", "educador", "educadora",
    "maestro", "maestra",
)
RESEARCHER_KEYWORDS = (
    "investigador", "investigadora", "investigator", "research",
    "científico", "científica", "science", "investigación", "investigacion",
    "ciencia",
)
STUDENT_KEYWORDS = ("estudiante", "student", "alumno", "alumna", "aprendiz")

USER_TYPE_TEACHER = "teacher"
USER_TYPE_RESEARCHER = "researcher"
USER_TYPE_TEACHER_RESEARCHER = "teacher_researcher"
USER_TYPE_STUDENT = "student"
USER_TYPE_STAFF = "staff"


def classify_title(title: Optional[str]) -> str:
    if not title:
        return USER_TYPE_STUDENT

    lowered = title.lower()
    is_teacher = any(k in lowered for k in TEACHER_KEYWORDS)
    is_researcher = any(k in lowered for k in RESEARCHER_KEYWORDS)

    if is_teacher and is_researcher:
        return USER_TYPE_TEACHER_RESEARCHER
    if is_teacher:
        return USER_TYPE_TEACHER
    if is_researcher:
        return USER_TYPE_RESEARCHER
    if any(k in lowered for k in STUDENT_KEYWORDS):
        return USER_TYPE_STUDENT
    return USER_TYPE_STAFF


async def build_profile(db: AsyncSession, user: User, groups: List[str] = None) -> dict:
    return {
        "username": user.username,
        "display_name": user.display_name,
        "institutional_email": user.institutional_email,
        "backup_email": user.backup_email,
        "employee_id": user.employee_id,
        "title": user.title,
        "user_type": classify_title(user.title),
        "two_factor_enabled": user.two_factor_enabled,
        "has_pin": user.has_pin,
        "device_count": await count_devices(db, user.username),
        "groups": groups or [],
    }
