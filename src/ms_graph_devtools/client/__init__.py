"""Microsoft Graph service wrappers.

Each service is a thin GraphClientBase subclass. Construct it with either a
configuration (``config=``) or a shared AzureAuth (``auth=``).
"""
from .base import GraphClientBase
from .outlook import Outlook, MailBuilder
from .calendar import Calendar
from .teams import Teams, AdaptiveCardBuilder, Tag
from .sharepoint import SharePoint

__all__ = [
    'GraphClientBase',
    'Outlook',
    'MailBuilder',
    'Calendar',
    'Teams',
    'AdaptiveCardBuilder',
    'Tag',
    'SharePoint',
]
