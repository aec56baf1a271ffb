"""Finds the card that is still waiting to be delivered to a user."""

import json

from botbuilder.core import CardFactory

from ..logging_config import get_logger
from ..models import MessageLog, MessageStatus, PendingCardInfo
from ..storage import IStorage

logger = get_logger(__name__)


class PendingCardLookupService:
    """Resolves Pending message logs to their template card."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def get_latest_pending_card_by_upn(self, upn: str) -> PendingCardInfo | None:
        """
        Newest Pending log for the user, with its batch, template and card.

        Returns None when the user has nothing pending, when the batch or
        template behind the log is gone, or on lookup errors (logged).
        """
        try:
            logs = await self._storage.get_message_logs(
                recipient_upn=upn, status=MessageStatus.PENDING.value
            )
            if not logs:
                logger.info(f"No pending messages for {upn}")
                return None

            return await self._build_card_info(logs[0])
        except Exception as e:
            logger.error(f"Error looking up pending card for {upn}: {e}", exc_info=True)
            return None

    async def get_all_pending_cards_by_upn(self, upn: str) -> list[PendingCardInfo]:
        """Every resolvable pending card for the user, newest first."""
        logs = await self._storage.get_message_logs(
            recipient_upn=upn, status=MessageStatus.PENDING.value
        )
        cards = []
        for log in logs:
            card = await self._build_card_info(log)
            if card:
                cards.append(card)
        return cards

    async def _build_card_info(self, log: MessageLog) -> PendingCardInfo | None:
        batch = await self._storage.get_batch(log.message_batch_id)
        if not batch:
            logger.warning(f"Batch {log.message_batch_id} not found for log {log.id}")
            return None

        template = await self._storage.get_template(batch.template_id)
        if not template:
            logger.warning(f"Template {batch.template_id} not found for batch {batch.id}")
            return None

        if not template.json_payload:
            logger.warning(f"Template {template.id} has no card JSON")
            return None

        return PendingCardInfo(
            message_log_id=log.id,
            batch_id=batch.id,
            template_id=template.id,
            template_name=template.template_name,
            card_json=template.json_payload,
            card_attachment=CardFactory.adaptive_card(json.loads(template.json_payload)),
        )
