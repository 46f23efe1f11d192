from sqlalchemy import Column, String, Boolean

from app.core.database import Base, generate_uuid


class Employee(Base):
    """HR roster entry, looked up by national id for the dual-status check"""
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    national_id = Column(String(20), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    department = Column(String(255), nullable=True)
    position = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Employee {self.national_id}>"
