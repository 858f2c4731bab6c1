"""
Microsoft Graph OAuth Scopes for ms-graph-devtools.

This module defines the delegated permissions requested by default. They work
without admin consent in most tenants.
"""

import logging
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

# OpenID Connect scopes; offline_access is what makes the server issue refresh tokens
OPENID_SCOPE = "openid"
PROFILE_SCOPE = "profile"
OFFLINE_ACCESS_SCOPE = "offline_access"

BASE_SCOPES = [OPENID_SCOPE, PROFILE_SCOPE, OFFLINE_ACCESS_SCOPE]

# User profile
USER_READ_SCOPE = "User.Read"

# Mail
MAIL_SEND_SCOPE = "Mail.Send"
MAIL_READ_SCOPE = "Mail.Read"

MAIL_SCOPES = [MAIL_SEND_SCOPE, MAIL_READ_SCOPE]

# Calendars
CALENDARS_SCOPE = "Calendars.ReadWrite"
CALENDARS_SHARED_SCOPE = "Calendars.ReadWrite.Shared"

CALENDAR_SCOPES = [CALENDARS_SCOPE, CALENDARS_SHARED_SCOPE]

# Teams
CHANNEL_MESSAGE_SCOPE = "ChannelMessage.Send"
CHAT_MESSAGE_SCOPE = "ChatMessage.Send"

TEAMS_SCOPES = [CHANNEL_MESSAGE_SCOPE, CHAT_MESSAGE_SCOPE]

DEFAULT_SCOPES = BASE_SCOPES + [USER_READ_SCOPE] + MAIL_SCOPES + CALENDAR_SCOPES + TEAMS_SCOPES


def get_scopes(scopes: Optional[Sequence[str]] = None) -> List[str]:
    """
    Get the ordered scope list to request.

    Args:
        scopes: Custom scopes; the defaults are used when empty.

    Returns:
        Scopes in request order with duplicates removed.
    """
    if not scopes:
        return list(DEFAULT_SCOPES)
    return list(dict.fromkeys(scopes))


def format_scopes(scopes: Sequence[str]) -> str:
    """Join scopes the way the token endpoint expects them."""
    return " ".join(scopes)
