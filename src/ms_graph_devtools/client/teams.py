"""Microsoft Teams operations for Microsoft Graph."""
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .base import GraphClientBase

logger = logging.getLogger(__name__)

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"


@dataclass
class Tag:
    """Something to @mention: a team, a team tag, or a user."""

    id: str
    display_name: str
    type: str  # 'team', 'tag' or 'user'


def _mentioned_object(tag: Tag) -> Dict[str, Any]:
    if tag.type == "team":
        return {
            "conversation": {
                "id": tag.id,
                "displayName": tag.display_name,
                "conversationIdentityType": "team",
            }
        }
    elif tag.type == "tag":
        return {
            "tag": {
                "id": tag.id,
                "displayName": tag.display_name,
                "conversationIdentityType": "channel",
            }
        }
    elif tag.type == "user":
        return {
            "user": {
                "id": tag.id,
                "displayName": tag.display_name,
                "userIdentityType": "aadUser",
            }
        }
    raise ValueError(f"unrecognized tag type: {tag.type!r}")


class Teams(GraphClientBase):
    """Team, channel and channel-message operations."""

    async def get_teams(self) -> List[Dict[str, Any]]:
        """Get the teams the signed-in user is a member of."""
        teams = await self._get_values("me/joinedTeams")
        return [
            {"id": t.get("id"), "displayName": t.get("displayName"), "description": t.get("description")}
            for t in teams
        ]

    async def get_channels(self, team_id: str) -> List[Dict[str, Any]]:
        channels = await self._get_values(f"teams/{team_id}/channels")
        return [
            {
                "id": c.get("id"),
                "displayName": c.get("displayName"),
                "description": c.get("description"),
                "membershipType": c.get("membershipType"),
            }
            for c in channels
        ]

    async def get_tags(self, team_id: str) -> List[Dict[str, Any]]:
        tags = await self._get_values(f"teams/{team_id}/tags")
        return [
            {
                "id": t.get("id"),
                "displayName": t.get("displayName"),
                "description": t.get("description"),
                "memberCount": t.get("memberCount"),
            }
            for t in tags
        ]

    def create_mention_body(self, tags: Sequence[Tag]) -> List[Dict[str, Any]]:
        """Build the Graph 'mentions' array; ids match the <at id> markers."""
        return [
            {"id": i, "mentionText": tag.display_name, "mentioned": _mentioned_object(tag)}
            for i, tag in enumerate(tags)
        ]

    async def post_adaptive_card(
        self,
        team_id: str,
        channel_id: str,
        card: Dict[str, Any],
        tags: Optional[Sequence[Tag]] = None,
    ) -> Dict[str, Any]:
        """Post an adaptive card to a channel, optionally mentioning tags.

        Args:
            team_id: Team ID.
            channel_id: Channel ID.
            card: Adaptive card JSON.
            tags: Teams, tags or users to @mention above the card.

        Returns:
            The created chatMessage resource.
        """
        tags = list(tags or [])
        mention_text = "<br>".join(f'<at id="{i}">{tag.display_name}</at>' for i, tag in enumerate(tags))
        attachment_id = str(uuid.uuid4())

        payload = {
            "body": {
                "contentType": "html",
                "content": f'<div><div>{mention_text}<attachment id="{attachment_id}"></attachment></div></div>',
            },
            "attachments": [
                {
                    "id": attachment_id,
                    "contentType": ADAPTIVE_CARD_CONTENT_TYPE,
                    "contentUrl": None,
                    "content": json.dumps(card),
                    "name": None,
                    "thumbnailUrl": None,
                    "teamsAppId": None,
                }
            ],
            "mentions": self.create_mention_body(tags),
        }

        response = await self._request(
            "POST", f"teams/{team_id}/channels/{channel_id}/messages", json=payload
        )
        logger.info(f"Posted adaptive card to team {team_id}, channel {channel_id}")
        return response.json()

    def compose(self) -> "AdaptiveCardBuilder":
        """Start a fluent adaptive card builder bound to this service."""
        return AdaptiveCardBuilder(self)


class AdaptiveCardBuilder:
    """Fluent builder for channel adaptive cards. Use via Teams.compose()."""

    def __init__(self, teams: Teams) -> None:
        self._teams = teams
        self._team_id = ""
        self._channel_id = ""
        self._card: Optional[Dict[str, Any]] = None
        self._tags: List[Tag] = []

    def team(self, team_id: str) -> "AdaptiveCardBuilder":
        self._team_id = team_id
        return self

    def channel(self, channel_id: str) -> "AdaptiveCardBuilder":
        self._channel_id = channel_id
        return self

    def card(self, card: Dict[str, Any]) -> "AdaptiveCardBuilder":
        self._card = card
        return self

    def mention_team(self, id: str, display_name: str) -> "AdaptiveCardBuilder":
        self._tags.append(Tag(id, display_name, "team"))
        return self

    def mention_tag(self, id: str, display_name: str) -> "AdaptiveCardBuilder":
        self._tags.append(Tag(id, display_name, "tag"))
        return self

    def mention_user(self, id: str, display_name: str) -> "AdaptiveCardBuilder":
        self._tags.append(Tag(id, display_name, "user"))
        return self

    def mentions(self, tags: Sequence[Tag]) -> "AdaptiveCardBuilder":
        self._tags.extend(tags)
        return self

    def clear_mentions(self) -> "AdaptiveCardBuilder":
        self._tags = []
        return self

    def get_config(self) -> Dict[str, Any]:
        return {
            "team_id": self._team_id,
            "channel_id": self._channel_id,
            "card": self._card,
            "tags": list(self._tags),
        }

    async def send(self) -> Dict[str, Any]:
        if not self._team_id:
            raise ValueError("Team ID is required. Use .team() to set it.")
        if not self._channel_id:
            raise ValueError("Channel ID is required. Use .channel() to set it.")
        if not self._card:
            raise ValueError("Adaptive card is required. Use .card() to set it.")

        return await self._teams.post_adaptive_card(
            self._team_id, self._channel_id, self._card, self._tags or None
        )
