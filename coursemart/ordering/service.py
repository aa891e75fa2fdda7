"""Ordered sibling collections.

Sections are ordered within a course and lessons within a section through an
integer ``sort_order`` column. Positions are unique per parent (enforced by a
UNIQUE constraint) and may contain gaps after deletes; a full reorder always
renumbers the siblings to ``0..n-1``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursemart.database import transaction
from coursemart.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _id_attribute(model: type) -> str:
    mapper = inspect(model)
    return mapper.get_property_by_column(mapper.primary_key[0]).key


class OrderedCollectionManager:
    """Keeps the ``sort_order`` of one kind of child row consistent per parent.

    ``model`` is the ordered child (e.g. ``CourseSection``); ``parent_model`` is
    the row it hangs off (e.g. ``Course``) and ``parent_key`` the child's FK
    attribute pointing at it. Every write runs in its own transaction opened
    from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type,
        *,
        parent_model: type,
        parent_key: str,
        label: str,
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._parent_model = parent_model
        self._parent_key = parent_key
        self._parent_col = getattr(model, parent_key)
        self._id_attr = _id_attribute(model)
        self._parent_id_attr = _id_attribute(parent_model)
        self._max_attempts = max(1, max_attempts)
        self.label = label

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def next_order(self, session: AsyncSession, parent_id: UUID) -> int:
        """Position one past the current last sibling, ``0`` for an empty parent.

        Runs on the caller's session so it shares the caller's transaction
        with the insert that uses the value.
        """
        result = await session.execute(
            select(func.max(self._model.sort_order)).where(self._parent_col == parent_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def siblings(self, parent_id: UUID) -> list[Any]:
        async with self._session_factory() as session:
            return await self._load_siblings(session, parent_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_at_end(self, parent_id: UUID, **fields: Any) -> Any:
        """Append a new child to ``parent_id``.

        A concurrent insert that claimed the same position trips the
        UNIQUE(parent, sort_order) constraint; the read-then-write is retried
        and ``ConflictError`` escapes only once the attempts are exhausted.
        """

        async def place(session: AsyncSession, position: int) -> Any:
            row = self._model(**{self._parent_key: parent_id}, sort_order=position, **fields)
            session.add(row)
            return row

        return await self._place_at_end(parent_id, place, "insert")

    async def move(self, row_id: UUID, parent_id: UUID, **fields: Any) -> Any:
        """Move an existing child to the end of ``parent_id`` and apply ``fields``.

        Same locking and retry as ``insert_at_end``. A row already under
        ``parent_id`` keeps its position.
        """

        async def place(session: AsyncSession, position: int) -> Any:
            row = await session.get(self._model, row_id)
            if row is None:
                raise NotFoundError(self.label, row_id)
            if getattr(row, self._parent_key) != parent_id:
                setattr(row, self._parent_key, parent_id)
                row.sort_order = position
            for key, value in fields.items():
                setattr(row, key, value)
            return row

        return await self._place_at_end(parent_id, place, "move")

    async def reorder(self, parent_id: UUID, ordered_ids: Sequence[UUID]) -> list[Any]:
        """Assign ``sort_order = index`` following ``ordered_ids``.

        ``ordered_ids`` must be exactly the parent's current children; anything
        else is a ``ValidationError`` and nothing is written.
        """
        async with transaction(self._session_factory) as session:
            await self._lock_parent(session, parent_id)
            return await self._apply_order(session, parent_id, list(ordered_ids))

    async def reorder_children(self, ordered_ids: Sequence[UUID]) -> list[Any]:
        """Reorder when the caller only knows the child ids.

        The parent is resolved from the rows; ids spanning several parents are
        rejected rather than reordered against the first one.
        """
        ids = list(ordered_ids)
        if not ids:
            raise ValidationError(f"No {self.label.lower()} ids to reorder.")

        async with transaction(self._session_factory) as session:
            result = await session.execute(
                select(self._parent_col)
                .where(getattr(self._model, self._id_attr).in_(ids))
                .distinct()
            )
            parent_ids = list(result.scalars().all())
            if not parent_ids:
                raise ValidationError(f"Unknown {self.label.lower()} ids.")
            if len(parent_ids) > 1:
                raise ValidationError(
                    f"{self.label} ids belong to more than one parent and cannot be reordered together."
                )
            parent_id = parent_ids[0]
            await self._lock_parent(session, parent_id)
            return await self._apply_order(session, parent_id, ids)

    async def delete(self, row_id: UUID) -> None:
        """Remove one child. Remaining siblings keep their positions."""
        async with transaction(self._session_factory) as session:
            row = await session.get(self._model, row_id)
            if row is None:
                raise NotFoundError(self.label, row_id)
            await session.delete(row)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _place_at_end(
        self,
        parent_id: UUID,
        place: Callable[[AsyncSession, int], Awaitable[Any]],
        action: str,
    ) -> Any:
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with transaction(self._session_factory) as session:
                    await self._lock_parent(session, parent_id)
                    position = await self.next_order(session, parent_id)
                    row = await place(session, position)
                    try:
                        await session.flush()
                    except IntegrityError as exc:
                        raise ConflictError(
                            f"{self.label} position {position} was taken by a concurrent write."
                        ) from exc
                    return row
            except ConflictError:
                if attempt == self._max_attempts:
                    raise
                logger.warning(
                    "%s %s under %s lost a position race (attempt %d/%d), retrying",
                    self.label, action, parent_id, attempt, self._max_attempts,
                )
        raise AssertionError("unreachable")

    async def _lock_parent(self, session: AsyncSession, parent_id: UUID) -> Any:
        # Row lock on the parent serialises writers of the same sibling set
        # (FOR UPDATE renders as a no-op on SQLite).
        result = await session.execute(
            select(self._parent_model)
            .where(getattr(self._parent_model, self._parent_id_attr) == parent_id)
            .with_for_update()
        )
        parent = result.scalar_one_or_none()
        if parent is None:
            raise NotFoundError(self._parent_model.__name__, parent_id)
        return parent

    async def _load_siblings(self, session: AsyncSession, parent_id: UUID) -> list[Any]:
        result = await session.execute(
            select(self._model)
            .where(self._parent_col == parent_id)
            .order_by(self._model.sort_order)
        )
        return list(result.scalars().all())

    def _check_same_set(self, current_ids: set[UUID], ordered_ids: list[UUID]) -> None:
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError(f"{self.label} order contains duplicate ids.")
        requested = set(ordered_ids)
        foreign = requested - current_ids
        if foreign:
            raise ValidationError(
                f"{self.label} order contains ids that are not children of this parent: "
                + ", ".join(sorted(str(i) for i in foreign))
            )
        missing = current_ids - requested
        if missing:
            raise ValidationError(
                f"{self.label} order is missing ids: "
                + ", ".join(sorted(str(i) for i in missing))
            )

    async def _apply_order(
        self, session: AsyncSession, parent_id: UUID, ordered_ids: list[UUID]
    ) -> list[Any]:
        rows = await self._load_siblings(session, parent_id)
        by_id = {getattr(row, self._id_attr): row for row in rows}
        self._check_same_set(set(by_id), ordered_ids)
        if not ordered_ids:
            return []

        # Two passes so UNIQUE(parent, sort_order) holds after every statement:
        # park every row on a distinct negative slot, then assign final slots.
        for index, row_id in enumerate(ordered_ids):
            by_id[row_id].sort_order = -(index + 1)
        await session.flush()
        for index, row_id in enumerate(ordered_ids):
            by_id[row_id].sort_order = index
        await session.flush()

        logger.info("Reordered %d %s rows under %s", len(ordered_ids), self.label.lower(), parent_id)
        return [by_id[row_id] for row_id in ordered_ids]
