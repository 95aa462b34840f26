"""Direct messages between two users.

A conversation is created on the first message; its participants are
stored sorted (``user1_id < user2_id``) so each pair has exactly one row.
"""

import logging
from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.errors import Forbidden, NotFound, ValidationError
from watchrebel.models.tables import Conversation, Message, User, utcnow
from watchrebel.services.notifier import FanoutNotifier
from watchrebel.services.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)


def serialize_message(m: Message, sender: Optional[User] = None) -> dict:
    data = {
        "id": m.id,
        "conversationId": m.conversation_id,
        "senderId": m.sender_id,
        "receiverId": m.receiver_id,
        "content": m.content,
        "isRead": m.is_read,
        "createdAt": m.created_at.isoformat(),
    }
    if sender is not None:
        data["sender"] = {"displayName": sender.display_name, "avatarUrl": sender.avatar_url}
    return data


class MessagingService:
    def __init__(
        self,
        db: AsyncSession,
        connections: ConnectionRegistry,
        notifier: Optional[FanoutNotifier] = None,
    ):
        self.db = db
        self.connections = connections
        self.notifier = notifier

    async def send(self, sender: User, receiver_id: Optional[str], content: Optional[str]) -> Message:
        if not receiver_id or content is None:
            raise ValidationError("receiverId и content обязательны", "MISSING_FIELDS")
        text = content.strip()
        if not text:
            raise ValidationError("Сообщение не может быть пустым", "EMPTY_MESSAGE")
        if receiver_id == sender.id:
            raise ValidationError("Нельзя отправить сообщение самому себе", "SELF_MESSAGE")
        receiver = await self.db.get(User, receiver_id)
        if receiver is None:
            raise NotFound("Получатель не найден", "RECEIVER_NOT_FOUND")

        user1_id, user2_id = sorted((sender.id, receiver_id))
        conversation = await self.db.scalar(
            select(Conversation).where(Conversation.user1_id == user1_id, Conversation.user2_id == user2_id)
        )
        if conversation is None:
            conversation = Conversation(user1_id=user1_id, user2_id=user2_id)
            self.db.add(conversation)
            await self.db.flush()

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            receiver_id=receiver_id,
            content=text,
        )
        self.db.add(message)
        conversation.last_message_at = utcnow()
        await self.db.commit()

        await self.connections.send_new_message(receiver_id, serialize_message(message, sender))
        if self.notifier is not None:
            try:
                await self.notifier.notify_new_message(receiver_id, sender.id, text)
            except SQLAlchemyError as e:
                logger.error(f"Message push for {receiver_id} failed: {e}")
        return message

    async def get_conversations(self, user_id: str) -> list[dict]:
        conversations = (await self.db.execute(
            select(Conversation)
            .where(or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id))
            .order_by(Conversation.last_message_at.desc())
        )).scalars().all()
        if not conversations:
            return []

        ids = [c.id for c in conversations]
        other_ids = {c.user2_id if c.user1_id == user_id else c.user1_id for c in conversations}
        users = {
            u.id: u for u in (await self.db.execute(select(User).where(User.id.in_(other_ids)))).scalars().all()
        }

        unread = dict((await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(Message.conversation_id.in_(ids), Message.receiver_id == user_id, Message.is_read.is_(False))
            .group_by(Message.conversation_id)
        )).all())

        latest = select(
            Message.conversation_id, func.max(Message.created_at).label("latest")
        ).where(Message.conversation_id.in_(ids)).group_by(Message.conversation_id).subquery()
        last_content = dict((await self.db.execute(
            select(Message.conversation_id, Message.content).join(
                latest,
                and_(Message.conversation_id == latest.c.conversation_id, Message.created_at == latest.c.latest),
            )
        )).all())

        result = []
        for c in conversations:
            other = users.get(c.user2_id if c.user1_id == user_id else c.user1_id)
            result.append({
                "id": c.id,
                "otherUser": {
                    "id": other.id if other else None,
                    "displayName": other.display_name if other else None,
                    "avatarUrl": other.avatar_url if other else None,
                },
                "lastMessage": last_content.get(c.id),
                "unreadCount": unread.get(c.id, 0),
                "lastMessageAt": c.last_message_at.isoformat(),
                "createdAt": c.created_at.isoformat(),
            })
        return result

    async def read_conversation(self, user_id: str, conversation_id: str) -> list[dict]:
        """Return the thread oldest-first and mark incoming messages read."""
        conversation = await self.db.get(Conversation, conversation_id)
        if conversation is None or user_id not in (conversation.user1_id, conversation.user2_id):
            raise NotFound("Диалог не найден или у вас нет доступа", "CONVERSATION_NOT_FOUND")

        rows = await self.db.execute(
            select(Message, User)
            .join(User, Message.sender_id == User.id, isouter=True)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at)
        )
        messages = [serialize_message(m, u) for m, u in rows.all()]

        marked = await self.db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.receiver_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        await self.db.commit()

        if marked.rowcount:
            peer_id = conversation.user2_id if conversation.user1_id == user_id else conversation.user1_id
            await self.connections.send_messages_read(peer_id, conversation_id)
        return messages

    async def delete_message(self, user_id: str, message_id: str):
        message = await self.db.get(Message, message_id)
        if message is None:
            raise NotFound("Сообщение не найдено", "MESSAGE_NOT_FOUND")
        if message.sender_id != user_id:
            raise Forbidden("Можно удалять только свои сообщения", "FORBIDDEN")
        await self.db.delete(message)
        await self.db.commit()
