from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class PdvDraft(Base):
    """Carrinho em andamento do PDV, salvo a cada alteração."""

    __tablename__ = "pdv_drafts"

    session_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    recovery_pending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped["DateTime"] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
