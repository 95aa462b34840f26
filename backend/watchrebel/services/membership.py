"""Watchlist and custom-list membership.

A (user, media) pair occupies at most one slot across the user's watchlist
and all of their custom lists. Adding to a list evicts the item from any
other list and from the watchlist (promotion); adding to the watchlist is
refused while the item sits in a list.

The check → evict → insert sequence runs under a per-user lock and inside
one transaction. Title lookup and friend fan-out happen after commit and
never fail the primary operation.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.clients.base import IMediaCatalog
from watchrebel.domain import ActivityKind, ActivityMedia, MediaRef, MediaType, parse_media_type
from watchrebel.errors import Conflict, Forbidden, NotFound, ValidationError
from watchrebel.models.tables import CustomList, ListItem, WatchlistEntry
from watchrebel.services.catalog import lookup_title
from watchrebel.services.locks import KeyedLocks
from watchrebel.services.notifier import FanoutNotifier

logger = logging.getLogger(__name__)


class MembershipService:
    """Enforces the single-membership rule for watchlist and custom lists."""

    def __init__(
        self,
        db: AsyncSession,
        locks: KeyedLocks,
        notifier: Optional[FanoutNotifier] = None,
        catalog: Optional[IMediaCatalog] = None,
    ):
        self.db = db
        self.locks = locks
        self.notifier = notifier
        self.catalog = catalog

    # ── Custom lists ─────────────────────────────────────────────

    async def get_owned_list(self, user_id: str, list_id: str) -> CustomList:
        custom_list = await self.db.get(CustomList, list_id)
        if custom_list is None:
            raise NotFound("Список не найден", "LIST_NOT_FOUND")
        if custom_list.user_id != user_id:
            raise Forbidden("Нет прав на этот список", "FORBIDDEN")
        return custom_list

    async def get_lists(self, user_id: str, media_type: Optional[str] = None) -> list[CustomList]:
        query = select(CustomList).where(CustomList.user_id == user_id)
        if media_type in (MediaType.MOVIE.value, MediaType.TV.value):
            query = query.where(CustomList.media_type == media_type)
        rows = await self.db.execute(query.order_by(CustomList.created_at.desc()))
        return list(rows.scalars().all())

    async def create_list(self, user_id: str, name: Optional[str], media_type) -> CustomList:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Название списка не может быть пустым", "EMPTY_NAME")
        kind = parse_media_type(media_type)
        custom_list = CustomList(user_id=user_id, name=name, media_type=kind.value)
        self.db.add(custom_list)
        await self.db.commit()
        logger.info(f"User {user_id} created {kind.value} list '{name}'")
        return custom_list

    async def rename_list(self, user_id: str, list_id: str, name: Optional[str]) -> CustomList:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Название списка не может быть пустым", "EMPTY_NAME")
        custom_list = await self.get_owned_list(user_id, list_id)
        custom_list.name = name
        await self.db.commit()
        return custom_list

    async def delete_list(self, user_id: str, list_id: str):
        """Entries go with the list (ON DELETE CASCADE)."""
        async with self.locks.hold(user_id):
            custom_list = await self.get_owned_list(user_id, list_id)
            await self.db.delete(custom_list)
            await self.db.commit()
        logger.info(f"User {user_id} deleted list {list_id}")

    async def get_list_items(self, user_id: str, list_id: str) -> list[ListItem]:
        await self.get_owned_list(user_id, list_id)
        rows = await self.db.execute(
            select(ListItem).where(ListItem.list_id == list_id).order_by(ListItem.added_at.desc())
        )
        return list(rows.scalars().all())

    async def count_items(self, list_ids: list[str]) -> dict[str, int]:
        if not list_ids:
            return {}
        rows = await self.db.execute(
            select(ListItem.list_id, func.count(ListItem.id))
            .where(ListItem.list_id.in_(list_ids))
            .group_by(ListItem.list_id)
        )
        return {list_id: count for list_id, count in rows.all()}

    async def add_to_list(self, user_id: str, list_id: str, ref: MediaRef) -> ListItem:
        """Insert into a list, evicting any prior membership of the same item."""
        async with self.locks.hold(user_id):
            try:
                custom_list = await self.get_owned_list(user_id, list_id)
                if custom_list.media_type != ref.media_type.value:
                    kind = "фильмов" if custom_list.media_type == MediaType.MOVIE.value else "сериалов"
                    raise ValidationError(f"Этот список предназначен для {kind}", "MEDIA_TYPE_MISMATCH")

                rows = await self.db.execute(
                    select(ListItem, CustomList.name)
                    .join(CustomList, ListItem.list_id == CustomList.id)
                    .where(
                        CustomList.user_id == user_id,
                        ListItem.tmdb_id == ref.tmdb_id,
                        ListItem.media_type == ref.media_type.value,
                    )
                )
                # Invariant allows at most one row; if several exist the first wins
                existing = rows.first()
                if existing is not None:
                    existing_item, existing_name = existing
                    if existing_item.list_id == list_id:
                        raise Conflict(
                            "Этот контент уже находится в данном списке",
                            "ALREADY_IN_LIST",
                            existingListId=existing_item.list_id,
                            existingListName=existing_name,
                        )
                    logger.info(f"Moving {ref.media_type.value}/{ref.tmdb_id} from list '{existing_name}' for user {user_id}")
                    await self.db.delete(existing_item)

                await self.db.execute(
                    delete(WatchlistEntry).where(
                        WatchlistEntry.user_id == user_id,
                        WatchlistEntry.tmdb_id == ref.tmdb_id,
                        WatchlistEntry.media_type == ref.media_type.value,
                    )
                )

                item = ListItem(list_id=list_id, tmdb_id=ref.tmdb_id, media_type=ref.media_type.value)
                self.db.add(item)
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise Conflict("Этот контент уже находится в данном списке", "ALREADY_IN_LIST")
            except Exception:
                await self.db.rollback()
                raise

        await self._announce(user_id, ActivityKind.ADDED_TO_LIST, ref)
        return item

    async def remove_from_list(self, user_id: str, list_id: str, item_id: str):
        await self.get_owned_list(user_id, list_id)
        item = await self.db.get(ListItem, item_id)
        if item is None or item.list_id != list_id:
            raise NotFound("Элемент не найден в списке", "ITEM_NOT_FOUND")
        await self.db.delete(item)
        await self.db.commit()

    # ── Watchlist ────────────────────────────────────────────────

    async def get_watchlist(self, user_id: str, media_type: Optional[str] = None) -> list[WatchlistEntry]:
        query = select(WatchlistEntry).where(WatchlistEntry.user_id == user_id)
        if media_type in (MediaType.MOVIE.value, MediaType.TV.value):
            query = query.where(WatchlistEntry.media_type == media_type)
        rows = await self.db.execute(query.order_by(WatchlistEntry.added_at.desc()))
        return list(rows.scalars().all())

    async def add_to_watchlist(self, user_id: str, ref: MediaRef) -> WatchlistEntry:
        async with self.locks.hold(user_id):
            existing = await self.db.scalar(
                select(WatchlistEntry.id).where(
                    WatchlistEntry.user_id == user_id,
                    WatchlistEntry.tmdb_id == ref.tmdb_id,
                    WatchlistEntry.media_type == ref.media_type.value,
                )
            )
            if existing is not None:
                raise Conflict("Этот контент уже находится в списке желаемого", "ALREADY_IN_WATCHLIST")

            in_list = (await self.db.execute(
                select(ListItem.list_id, CustomList.name)
                .join(CustomList, ListItem.list_id == CustomList.id)
                .where(
                    CustomList.user_id == user_id,
                    ListItem.tmdb_id == ref.tmdb_id,
                    ListItem.media_type == ref.media_type.value,
                )
            )).first()
            if in_list is not None:
                raise Conflict(
                    f'Этот контент уже находится в списке "{in_list.name}"',
                    "ALREADY_IN_LIST",
                    existingListId=in_list.list_id,
                    existingListName=in_list.name,
                )

            entry = WatchlistEntry(user_id=user_id, tmdb_id=ref.tmdb_id, media_type=ref.media_type.value)
            self.db.add(entry)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise Conflict("Этот контент уже находится в списке желаемого", "ALREADY_IN_WATCHLIST")
        return entry

    async def remove_from_watchlist(self, user_id: str, item_id: str):
        entry = await self.db.get(WatchlistEntry, item_id)
        if entry is None or entry.user_id != user_id:
            raise NotFound("Элемент не найден", "ITEM_NOT_FOUND")
        await self.db.delete(entry)
        await self.db.commit()

    # ── Invariant helpers ────────────────────────────────────────

    async def membership_count(self, user_id: str, ref: MediaRef) -> int:
        """Watchlist rows plus list rows referencing (user, media); always ≤ 1."""
        in_watchlist = await self.db.scalar(
            select(func.count(WatchlistEntry.id)).where(
                WatchlistEntry.user_id == user_id,
                WatchlistEntry.tmdb_id == ref.tmdb_id,
                WatchlistEntry.media_type == ref.media_type.value,
            )
        )
        in_lists = await self.db.scalar(
            select(func.count(ListItem.id))
            .join(CustomList, ListItem.list_id == CustomList.id)
            .where(
                CustomList.user_id == user_id,
                ListItem.tmdb_id == ref.tmdb_id,
                ListItem.media_type == ref.media_type.value,
            )
        )
        return (in_watchlist or 0) + (in_lists or 0)

    async def _announce(self, user_id: str, kind: ActivityKind, ref: MediaRef):
        if self.notifier is None:
            return
        title = await lookup_title(self.catalog, ref)
        try:
            await self.notifier.notify_friend_activity(user_id, kind, ActivityMedia(ref=ref, title=title))
        except SQLAlchemyError as e:
            logger.error(f"Friend fan-out for {user_id} failed: {e}")
