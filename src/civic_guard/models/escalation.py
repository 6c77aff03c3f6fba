"""SQLAlchemy model for escalation events awaiting delivery."""

from sqlalchemy import JSON, VARCHAR, BigInteger, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from civic_guard.db.session import Base


class EscalationOutbound(Base):
    """Escalation event handed to the notification layer."""

    __tablename__ = "escalation_outbound"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    item_id: Mapped[str] = mapped_column(String(32), nullable=False)
    event_kind: Mapped[str] = mapped_column(Text, nullable=False)  # e.g. 'critical_report'
    severity: Mapped[str] = mapped_column(VARCHAR(10), nullable=False)
    reasons: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    target_roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        VARCHAR(20), nullable=False, default="pending"
    )  # 'pending', 'delivered', 'failed'
    retry_count: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
