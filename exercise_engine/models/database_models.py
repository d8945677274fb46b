"""SQLAlchemy ORM models for the persisted exercise catalog."""
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from exercise_engine.database import Base


class Exercise(Base):
    """One catalog exercise, stored once at catalog load."""

    __tablename__ = "exercises"

    # Insertion order doubles as the catalog's browse order.
    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    body_part: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="strength")
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="beginner")
    force_type: Mapped[str | None] = mapped_column(String(20), nullable=True)  # push, pull, static
    mechanics_type: Mapped[str | None] = mapped_column(String(20), nullable=True)  # compound, isolation

    equipment: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    target_muscles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    synergist_muscles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    stabilizer_muscles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    instructions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
