"""
core.domain.messaging — System messages on direct conversation threads.

Used by the complaint notification dispatcher to tell staff that work has
been assigned to them or taken away from them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Conversation, ConversationMessage

logger = logging.getLogger(__name__)

SYSTEM_PREFIX = "[SYSTEM] "


class MessagingService:

    @staticmethod
    def get_or_create_conversation(user_a: User, user_b: User) -> Conversation:
        """Return the single thread between two users, creating it on first use."""
        from core.models import Conversation

        first, second = sorted([user_a, user_b], key=lambda u: u.pk)
        conversation, created = Conversation.objects.get_or_create(
            participant_a=first,
            participant_b=second,
        )
        if created:
            logger.debug("Opened conversation #%s (%s, %s)", conversation.pk, first.pk, second.pk)
        return conversation

    @staticmethod
    def send_system_message(*, sender: User, recipient: User, body: str) -> ConversationMessage:
        """Post a system-flagged message from ``sender`` to ``recipient``."""
        from core.models import ConversationMessage

        conversation = MessagingService.get_or_create_conversation(sender, recipient)
        if not body.startswith(SYSTEM_PREFIX):
            body = SYSTEM_PREFIX + body
        return ConversationMessage.objects.create(
            conversation=conversation,
            sender=sender,
            body=body,
            is_system=True,
        )
