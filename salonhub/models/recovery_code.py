# salonhub/models/recovery_code.py
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, Index, String, DateTime, Boolean, func
from salonhub.core.db import Base

class RecoveryCode(Base):
    __tablename__ = "recovery_codes"
    __table_args__ = (
        Index("ix_recovery_codes_lookup", "user_id", "code_hash", "used"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    code_hash: Mapped[str] = mapped_column(String(128), nullable=False)   # sha256 hex, never the plaintext
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="recovery_codes")
