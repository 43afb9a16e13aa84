"""
User Role Model - role grants for platform users
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, UniqueConstraint

from daycare_messaging.core.clock import utcnow
from daycare_messaging.db.database import Base


class AppRole(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(
        SQLEnum(
            AppRole,
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False
    )
    created_at = Column(DateTime, default=utcnow)
