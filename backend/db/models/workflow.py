"""Workflow definition model."""

from typing import Optional

from sqlalchemy import JSON, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel


class Workflow(BaseModel):
    """Workflow model holding a declarative step graph bound to a form template.

    Attributes:
        id: Unique identifier (UUID string)
        name: Workflow name
        description: Workflow description
        form_template_id: Form template whose submissions trigger this workflow
        definition: JSON graph ``{"steps": [...], "connections": [...]}``
        version: Incremented on every definition change
        is_active: Whether form submissions trigger this workflow
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "workflows"

    name: Mapped[str] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    form_template_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    definition: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(default=1)
    is_active: Mapped[bool] = mapped_column(default=True, index=True)

    executions: Mapped[list["Execution"]] = relationship(
        "Execution",
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="raise",
    )
