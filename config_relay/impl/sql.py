import logging
from typing import Any, Callable, Mapping

from sqlalchemy import ForeignKey, String, Text, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from config_relay.base import PropertySnapshot, PropertyStore
from config_relay.errors import StoreUnavailable
from config_relay.properties import parse_properties

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class RevisionModel(Base):
    __tablename__ = "revisions"
    id: Mapped[int] = mapped_column(primary_key=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("revisions.id"), nullable=True
    )
    message: Mapped[str] = mapped_column(Text, default="")


class RevisionPropertyModel(Base):
    __tablename__ = "revision_properties"
    revision_id: Mapped[int] = mapped_column(
        ForeignKey("revisions.id"), primary_key=True
    )
    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(nullable=False)


class HeadModel(Base):
    __tablename__ = "heads"
    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    revision_id: Mapped[int] = mapped_column(ForeignKey("revisions.id"))


class SqlPropertyStore(PropertyStore):
    """
    Versioned property store kept in SQL tables.

    Every revision holds a full copy of the properties and points at its
    parent revision. A named head points at the current revision; the
    revision id is the snapshot version.
    """

    def __init__(
        self,
        session_maker: Callable[[], Session],
        head: str = "master",
        strict: bool = False,
    ) -> None:
        self.session_maker = session_maker
        self.head = head
        self.strict = strict

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SqlPropertyStore(...)")
        else:
            with p.group(4, "SqlPropertyStore(", ")"):
                p.breakable()
                p.text(f"head={self.head},")
                p.breakable()

    def _head_revision_id(self, session: Session) -> int | None:
        return session.execute(
            select(HeadModel.revision_id).where(HeadModel.name == self.head)
        ).scalar_one_or_none()

    def read(self) -> PropertySnapshot:
        try:
            with self.session_maker() as session:
                revision_id = self._head_revision_id(session)
                if revision_id is None:
                    raise StoreUnavailable(f"head {self.head!r} has no revisions yet")

                rows = session.execute(
                    select(RevisionPropertyModel.key, RevisionPropertyModel.value)
                    .where(RevisionPropertyModel.revision_id == revision_id)
                    .order_by(RevisionPropertyModel.position)
                ).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"cannot read head {self.head!r}: {e}") from e

        return PropertySnapshot(
            {row.key: row.value for row in rows}, version=str(revision_id)
        )

    def commit(self, properties: Mapping[str, str], message: str = "Update config") -> str:
        """Append a revision holding `properties` and move the head to it."""
        try:
            with self.session_maker() as session:
                parent_id = self._head_revision_id(session)

                revision = RevisionModel(parent_id=parent_id, message=message)
                session.add(revision)
                session.flush()

                session.add_all(
                    RevisionPropertyModel(
                        revision_id=revision.id, key=key, value=value, position=position
                    )
                    for position, (key, value) in enumerate(properties.items())
                )

                head = session.get(HeadModel, self.head)
                if head:
                    head.revision_id = revision.id
                else:
                    session.add(HeadModel(name=self.head, revision_id=revision.id))

                session.commit()
                version = str(revision.id)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"cannot commit to head {self.head!r}: {e}") from e

        logger.info("Committed revision %s to head %s: %s", version, self.head, message)
        return version

    def commit_text(self, text: str, message: str = "Update config") -> str:
        properties = parse_properties(text, strict=self.strict, source=f"sql:{self.head}")
        return self.commit(properties, message=message)

    def history(self) -> list[str]:
        """Revision ids reachable from the head, newest first."""
        try:
            with self.session_maker() as session:
                revision_id = self._head_revision_id(session)
                versions = []
                while revision_id is not None:
                    versions.append(str(revision_id))
                    revision_id = session.execute(
                        select(RevisionModel.parent_id).where(
                            RevisionModel.id == revision_id
                        )
                    ).scalar_one()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"cannot read history of {self.head!r}: {e}") from e
        return versions


def create_sql_property_store(
    session_maker: Callable[[], Session], head: str = "master"
) -> SqlPropertyStore:
    return SqlPropertyStore(session_maker, head=head)
