from sqlalchemy import Column, String, Enum, DateTime, Uuid, func
import uuid

from app.core.database import Base
from app.models.enums import UserRole


class User(Base):
    """Roster entry mirrored from the identity service."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(Enum(UserRole, values_callable=lambda x: [e.value for e in x]), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

