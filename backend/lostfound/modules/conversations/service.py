"""Conversation engine.

A conversation is opened either by the match pipeline (``create_from_match``)
or by a user asking about an item (``start_direct``). Status moves from
``active`` to ``resolved`` or ``closed`` and never back. Message order is
creation order; read receipts are append-only, one per user and message.
"""
from __future__ import annotations

import logging
import random
import secrets
from typing import Any, List, Mapping, Tuple

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ...errors import Forbidden, InvalidOperation, NotFound, TransientStorageFailure
from ...extensions import db
from ...models.conversation import Conversation, ConversationParticipant
from ...models.item import Item
from ...models.message import Message, MessageRead
from ...models.types import utcnow
from ...models.user import User
from ...schemas.conversation import MessageSchema
from ..notifications.bus import conversation_channel, publish
from ..notifications.service import try_emit
from .display_names import generate_display_name, make_rng

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "System"
MATCH_WELCOME = (
    "Hello! Our system found a potential match between your items. "
    "Let's verify the details to see if this is your lost/found item."
)
# Conversations a direct chat request may reuse
REUSABLE_STATUSES = ("active", "resolved")


def new_conversation_id() -> str:
    return f"chat_{secrets.token_urlsafe(16)}"


def new_message_id() -> str:
    return f"msg_{secrets.token_urlsafe(16)}"


def _preview(text: str, size: int = 50) -> str:
    return text if len(text) <= size else text[:size] + "..."


class ConversationService:
    def __init__(self, max_message_length: int = 1000, rng: random.Random | None = None):
        self.max_message_length = max_message_length
        self.rng = rng or make_rng()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ConversationService":
        return cls(
            max_message_length=int(config.get("MESSAGE_MAX_LENGTH", 1000)),
            rng=make_rng(config.get("DISPLAY_NAME_SEED")),
        )

    # ---- lookups ----

    def _get(self, conversation_id: str) -> Conversation:
        conv = Conversation.query.filter_by(conversation_id=conversation_id).first()
        if conv is None:
            raise NotFound("Conversation not found")
        return conv

    def _membership(self, conversation_id: str, user_id: int) -> Tuple[Conversation, ConversationParticipant]:
        conv = self._get(conversation_id)
        participant = conv.participant_for(user_id)
        if participant is None:
            raise Forbidden("Not a participant of this conversation")
        return conv, participant

    def _find_between(self, item_id: int, user_a: int, user_b: int) -> Conversation | None:
        return (
            Conversation.query.filter(
                or_(Conversation.item_id == item_id, Conversation.matched_item_id == item_id),
                Conversation.status.in_(REUSABLE_STATUSES),
                Conversation.participants.any(ConversationParticipant.user_id == user_a),
                Conversation.participants.any(ConversationParticipant.user_id == user_b),
            )
            .order_by(Conversation.created_at, Conversation.id)
            .first()
        )

    def _commit(self, what: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStorageFailure(f"Could not save {what}") from exc

    def _open(self, anchor: Item, origin: str, participants: List[ConversationParticipant], welcome: str,
              matched_item: Item | None = None) -> Conversation:
        conv = Conversation(
            conversation_id=new_conversation_id(),
            item_id=anchor.id,
            matched_item_id=matched_item.id if matched_item else None,
            origin=origin,
            status="active",
            total_messages=1,
            unread_count=1,
        )
        for pos, p in enumerate(participants):
            p.position = pos
            conv.participants.append(p)
        conv.messages.append(
            Message(
                message_id=new_message_id(),
                sender_user_id=None,
                sender_display_name=SYSTEM_SENDER,
                text=welcome,
                type="system",
            )
        )
        # Conversation, participants and welcome message land in one transaction
        db.session.add(conv)
        self._commit("conversation")
        return conv

    # ---- creation ----

    def create_from_match(self, item_a: Item, item_b: Item) -> Conversation | None:
        """Open the conversation for a matched pair; safe to call repeatedly."""
        if item_a.type == item_b.type:
            raise InvalidOperation(f"Cannot match two {item_a.type} items")
        lost, found = (item_a, item_b) if item_a.type == "lost" else (item_b, item_a)
        owner_id, finder_id = lost.reporter_user_id, found.reporter_user_id
        if not owner_id or not finder_id:
            logger.info("match %s/%s has an owner-less item; no conversation", lost.id, found.id)
            return None
        if owner_id == finder_id:
            logger.info("match %s/%s has a single owner; no conversation", lost.id, found.id)
            return None

        existing = Conversation.query.filter(
            Conversation.item_id.in_([lost.id, found.id]),
            Conversation.status == "active",
            Conversation.participants.any(ConversationParticipant.user_id.in_([owner_id, finder_id])),
        ).first()
        if existing is not None:
            logger.debug("conversation %s already covers match %s/%s", existing.conversation_id, lost.id, found.id)
            return existing

        participants = [
            ConversationParticipant(user_id=owner_id, role="owner", display_name=generate_display_name("owner", self.rng)),
            ConversationParticipant(user_id=finder_id, role="finder", display_name=generate_display_name("finder", self.rng)),
        ]
        conv = self._open(lost, "match", participants, MATCH_WELCOME, matched_item=found)
        logger.info("opened conversation %s for match %s/%s", conv.conversation_id, lost.id, found.id)
        return conv

    def start_direct(self, item_id: int, user_id: int) -> Tuple[Conversation, bool]:
        """Open (or reuse) a chat between ``user_id`` and the item's owner.

        Returns ``(conversation, created)``.
        """
        item = db.session.get(Item, item_id)
        if item is None:
            raise NotFound("Item not found")
        requester = db.session.get(User, user_id)
        if requester is None:
            raise NotFound("User not found")
        if item.reporter_user_id is None:
            raise InvalidOperation("Item has no owner to chat with")
        if item.reporter_user_id == user_id:
            raise InvalidOperation("Cannot chat with yourself")
        owner = db.session.get(User, item.reporter_user_id)
        if owner is None:
            raise NotFound("Item owner not found")

        existing = self._find_between(item.id, owner.id, requester.id)
        if existing is not None:
            return existing, False

        requester_role = "claimer" if item.type == "found" else "finder"
        participants = [
            ConversationParticipant(user_id=owner.id, role="owner", display_name=owner.display_name),
            ConversationParticipant(user_id=requester.id, role=requester_role, display_name=requester.display_name),
        ]
        welcome = f'Hello! This conversation is about the {item.type} item "{item.title}". Let\'s discuss the details.'
        conv = self._open(item, "direct", participants, welcome)
        cid = conv.conversation_id

        payload = {"conversationId": cid, "itemId": item.id}
        try_emit(
            owner.id,
            "chat_started",
            "New Chat Started",
            f'{requester.display_name} started a chat about your {item.type} item "{item.title}"',
            item_id=item.id,
            sender_id=requester.id,
            payload=payload,
        )
        try_emit(
            requester.id,
            "chat_started",
            "Chat Started",
            f'You started a chat about "{item.title}"',
            item_id=item.id,
            sender_id=owner.id,
            payload=payload,
        )
        return conv, True

    # ---- messaging ----

    def _clean_text(self, text: str | None) -> str:
        body = (text or "").strip()
        if not body:
            raise InvalidOperation("Message text is required")
        if len(body) > self.max_message_length:
            raise InvalidOperation(f"Message text exceeds {self.max_message_length} characters")
        return body

    def _touch(self, conversation_pk: int, messages: int = 1) -> None:
        """Targeted counter update so concurrent appends are not clobbered."""
        Conversation.query.filter_by(id=conversation_pk).update(
            {
                Conversation.total_messages: Conversation.total_messages + messages,
                Conversation.unread_count: Conversation.unread_count + messages,
                Conversation.last_activity_at: utcnow(),
            },
            synchronize_session=False,
        )
        db.session.commit()

    def _bump(self, conversation_pk: int, conversation_id: str) -> None:
        # Counters trail the message; a failed update is logged, never raised
        try:
            self._touch(conversation_pk)
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("could not update counters for %s", conversation_id, exc_info=True)

    def send_message(self, conversation_id: str, sender_id: int, text: str | None,
                     reply_to: str | None = None) -> Message:
        conv, participant = self._membership(conversation_id, sender_id)
        if not participant.is_active:
            raise Forbidden("You are no longer an active participant")
        if conv.status != "active":
            raise Forbidden(f"Conversation is {conv.status}")
        body = self._clean_text(text)

        conv_pk = conv.id
        other = conv.other_participant(sender_id)
        other_user_id = other.user_id if other else None
        anchor_item_id = conv.item_id
        msg = Message(
            message_id=new_message_id(),
            conversation_id=conversation_id,
            sender_user_id=sender_id,
            sender_display_name=participant.display_name,
            text=body,
            type="text",
            status="sent",
            reply_to_message_id=reply_to,
        )
        db.session.add(msg)
        self._commit("message")

        self._bump(conv_pk, conversation_id)

        if other_user_id is not None:
            try_emit(
                other_user_id,
                "message_received",
                "New Message",
                f"{msg.sender_display_name}: {_preview(body)}",
                item_id=anchor_item_id,
                sender_id=sender_id,
                payload={"conversationId": conversation_id, "messageId": msg.message_id},
            )

        self._broadcast(conversation_id, "new_message", {
            "conversationId": conversation_id,
            "messageId": msg.message_id,
            "senderId": sender_id,
            "senderDisplayName": msg.sender_display_name,
            "text": msg.text,
            "timestamp": msg.created_at.isoformat() if msg.created_at else None,
            "status": msg.status,
        })
        return msg

    def _own_message(self, conversation_id: str, message_id: str, user_id: int) -> Message:
        conv, _ = self._membership(conversation_id, user_id)
        if conv.status != "active":
            raise Forbidden(f"Conversation is {conv.status}")
        msg = Message.query.filter_by(conversation_id=conversation_id, message_id=message_id).first()
        if msg is None or msg.is_deleted:
            raise NotFound("Message not found")
        if msg.sender_user_id != user_id or msg.type == "system":
            raise Forbidden("Only the sender can change this message")
        return msg

    def edit_message(self, conversation_id: str, message_id: str, user_id: int, text: str | None) -> Message:
        msg = self._own_message(conversation_id, message_id, user_id)
        msg.text = self._clean_text(text)
        msg.is_edited = True
        msg.edited_at = utcnow()
        self._commit("message")
        self._broadcast(conversation_id, "message_edited", MessageSchema().dump(msg))
        return msg

    def delete_message(self, conversation_id: str, message_id: str, user_id: int) -> None:
        msg = self._own_message(conversation_id, message_id, user_id)
        msg.is_deleted = True
        msg.deleted_at = utcnow()
        self._commit("message")
        self._broadcast(conversation_id, "message_deleted", {"conversationId": conversation_id, "messageId": message_id})

    # ---- reading ----

    def _mark_read(self, conv: Conversation, participant: ConversationParticipant) -> int:
        user_id = participant.user_id
        now = utcnow()
        unread = (
            Message.query.filter(
                Message.conversation_id == conv.conversation_id,
                or_(Message.sender_user_id.is_(None), Message.sender_user_id != user_id),
                ~Message.read_by.any(MessageRead.user_id == user_id),
            )
            .all()
        )
        for m in unread:
            m.read_by.append(MessageRead(user_id=user_id, read_at=now))
            m.status = "read"
        participant.last_seen_at = now
        conv.unread_count = 0
        self._commit("read receipts")
        return len(unread)

    def fetch_history(self, conversation_id: str, user_id: int) -> Tuple[Conversation, List[Message]]:
        """Ordered history for a (current or past) participant; marks it read."""
        conv, participant = self._membership(conversation_id, user_id)
        self._mark_read(conv, participant)
        messages = (
            Message.query.filter(
                Message.conversation_id == conversation_id,
                Message.is_deleted.is_(False),
            )
            .order_by(Message.created_at, Message.id)
            .all()
        )
        return conv, messages

    def mark_read(self, conversation_id: str, user_id: int) -> int:
        conv, participant = self._membership(conversation_id, user_id)
        return self._mark_read(conv, participant)

    def list_for_user(self, user_id: int) -> List[Conversation]:
        return (
            Conversation.query.filter(
                Conversation.participants.any(ConversationParticipant.user_id == user_id),
                Conversation.status.in_(REUSABLE_STATUSES),
            )
            .order_by(Conversation.last_activity_at.desc(), Conversation.id.desc())
            .all()
        )

    # ---- lifecycle ----

    def _finish(self, conversation_id: str, user_id: int, status: str, text_for) -> Tuple[Conversation, ConversationParticipant]:
        conv, participant = self._membership(conversation_id, user_id)
        if conv.status != "active":
            raise InvalidOperation(f"Conversation is already {conv.status}")
        conv.status = status
        conv.messages.append(
            Message(
                message_id=new_message_id(),
                sender_user_id=user_id,
                sender_display_name=participant.display_name,
                text=text_for(participant),
                type="system",
            )
        )
        return conv, participant

    def resolve(self, conversation_id: str, user_id: int, notes: str | None = None,
                item_returned: bool = False) -> Conversation:
        def text_for(p):
            tail = "Item has been returned." if item_returned else "Item return pending."
            return f"{p.display_name} marked this conversation as resolved. {tail}"

        conv, participant = self._finish(conversation_id, user_id, "resolved", text_for)
        conv.resolved_at = utcnow()
        conv.resolved_by_user_id = user_id
        conv.resolution_notes = notes or ""
        conv.item_returned = bool(item_returned)
        other = conv.other_participant(user_id)
        other_user_id = other.user_id if other else None
        name = participant.display_name
        anchor_item_id = conv.item_id
        conv_pk = conv.id
        self._commit("conversation")
        self._bump(conv_pk, conversation_id)

        if other_user_id is not None:
            try_emit(
                other_user_id,
                "item_resolved",
                "Chat Resolved",
                f"{name} marked the conversation as resolved",
                item_id=anchor_item_id,
                sender_id=user_id,
                payload={"conversationId": conversation_id, "itemReturned": bool(item_returned)},
            )
        self._broadcast(conversation_id, "conversation_status", {"conversationId": conversation_id, "status": "resolved"})
        return conv

    def close(self, conversation_id: str, user_id: int) -> Conversation:
        conv, _ = self._finish(
            conversation_id, user_id, "closed", lambda p: f"{p.display_name} closed this conversation."
        )
        conv_pk = conv.id
        self._commit("conversation")
        self._bump(conv_pk, conversation_id)
        self._broadcast(conversation_id, "conversation_status", {"conversationId": conversation_id, "status": "closed"})
        return conv

    # ---- live signals (not persisted) ----

    def _broadcast(self, conversation_id: str, event_type: str, data: dict) -> None:
        try:
            publish(conversation_channel(conversation_id), {"type": event_type, "data": data})
        except Exception:
            logger.warning("live fan-out failed for %s", conversation_id, exc_info=True)

    def publish_typing(self, conversation_id: str, user_id: int, is_typing: bool) -> None:
        _, participant = self._membership(conversation_id, user_id)
        self._broadcast(conversation_id, "user_typing", {
            "userId": user_id,
            "displayName": participant.display_name,
            "isTyping": bool(is_typing),
        })

    def publish_presence(self, conversation_id: str, user_id: int, status: str = "online") -> None:
        self._membership(conversation_id, user_id)
        self._broadcast(conversation_id, "user_status", {"userId": user_id, "status": status})


def get_conversation_service() -> ConversationService:
    return ConversationService.from_config(current_app.config)
