"""Change request model."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from buildsvc.constants import RequestState
from buildsvc.models.orm.base import Base
from buildsvc.utils import Created_at, Desc, Login, Pk, Updated_at


class ChangeRequest(Base):
    """
    Pending review request between two packages or projects.

    Only the fields needed to find and revoke requests that mention a
    deleted entity are modelled here.
    """

    __tablename__ = "change_request"

    pk: Mapped[Pk]

    state: Mapped[str] = mapped_column(
        String(16), default=RequestState.NEW.value, index=True
    )

    creator: Mapped[Login]

    description: Mapped[Desc | None]

    source_project: Mapped[str | None] = mapped_column(String(200), index=True)

    source_package: Mapped[str | None] = mapped_column(String(200))

    target_project: Mapped[str | None] = mapped_column(String(200), index=True)

    target_package: Mapped[str | None] = mapped_column(String(200))

    state_comment: Mapped[Desc | None]

    created_at: Mapped[Created_at]

    updated_at: Mapped[Updated_at]

    @property
    def is_open(self) -> bool:
        return self.state in (RequestState.NEW.value, RequestState.REVIEW.value)
