"""Helpers for identifying who the bot is talking to."""

from botbuilder.schema import ChannelAccount

from ..models import BotUser


def parse_bot_user_info(account: ChannelAccount) -> BotUser:
    """Prefer the Azure AD object id; fall back to the channel's own user id."""
    if account.aad_object_id:
        return BotUser(user_id=account.aad_object_id, is_azure_ad_user_id=True)
    return BotUser(user_id=account.id, is_azure_ad_user_id=False)
