import uuid
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Uuid, Enum as SQLEnum

from app.core import clock
from app.core.database import Base
from app.models.enums import NotificationType, RecipientRole


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    recipient_role = Column(SQLEnum(RecipientRole, values_callable=lambda x: [e.value for e in x]), nullable=False)
    type = Column(SQLEnum(NotificationType, values_callable=lambda x: [e.value for e in x]), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # Task id or submission id depending on type
    related_id = Column(Uuid, nullable=True, index=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=clock.utcnow, nullable=False)
