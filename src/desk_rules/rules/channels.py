"""Ticket channel families used by the channel type condition."""

from __future__ import annotations

from dataclasses import dataclass

from desk_rules.core.exceptions import CatalogMismatchError
from desk_rules.messages import DETAIL, MessageFormatter
from desk_rules.models import BotType, ChannelType

C = ChannelType

IN_APP_CHANNELS: tuple[ChannelType, ...] = (
    C.INAPP,
    C.SENDBIRD_IOS,
    C.SENDBIRD_ANDROID,
    C.SENDBIRD_JAVASCRIPT,
    C.SENDBIRD,
)
FACEBOOK_CHANNELS: tuple[ChannelType, ...] = (C.FACEBOOK, C.FACEBOOK_CONVERSATION, C.FACEBOOK_FEED)
TWITTER_CHANNELS: tuple[ChannelType, ...] = (
    C.TWITTER,
    C.TWITTER_DIRECT_MESSAGE_EVENT,
    C.TWITTER_STATUS,
)
INSTAGRAM_CHANNELS: tuple[ChannelType, ...] = (C.INSTAGRAM, C.INSTAGRAM_COMMENT)
WHATSAPP_CHANNELS: tuple[ChannelType, ...] = (C.WHATSAPP, C.WHATSAPP_MESSAGE)

SOCIAL_CHANNELS = FACEBOOK_CHANNELS + TWITTER_CHANNELS + INSTAGRAM_CHANNELS + WHATSAPP_CHANNELS

# Display order of the channel type dropdown; the first member of each
# family is its parent entry
CHANNEL_FAMILIES: tuple[tuple[ChannelType, ...], ...] = (
    IN_APP_CHANNELS,
    FACEBOOK_CHANNELS,
    TWITTER_CHANNELS,
    INSTAGRAM_CHANNELS,
    WHATSAPP_CHANNELS,
)
ALL_CHANNELS: tuple[ChannelType, ...] = IN_APP_CHANNELS + SOCIAL_CHANNELS
PARENT_CHANNELS: frozenset[ChannelType] = frozenset(family[0] for family in CHANNEL_FAMILIES)

CUSTOM_BOT_CHANNELS: tuple[ChannelType, ...] = (
    *IN_APP_CHANNELS,
    C.FACEBOOK_CONVERSATION,
    C.TWITTER_DIRECT_MESSAGE_EVENT,
    *WHATSAPP_CHANNELS,
)
FAQ_BOT_CHANNELS: tuple[ChannelType, ...] = IN_APP_CHANNELS

BOT_CHANNELS: dict[BotType, tuple[ChannelType, ...]] = {
    BotType.CUSTOM: CUSTOM_BOT_CHANNELS,
    BotType.FAQ: FAQ_BOT_CHANNELS,
}

_LABEL_SUFFIX: dict[ChannelType, str] = {
    C.INAPP: "inApp",
    C.SENDBIRD_IOS: "inApp.sendbird.ios",
    C.SENDBIRD_ANDROID: "inApp.sendbird.android",
    C.SENDBIRD_JAVASCRIPT: "inApp.sendbird.javascript",
    C.SENDBIRD: "inApp.sendbird.others",
    C.FACEBOOK: "facebook",
    C.FACEBOOK_CONVERSATION: "facebook.conversation",
    C.FACEBOOK_FEED: "facebook.feed",
    C.TWITTER: "twitter",
    C.TWITTER_DIRECT_MESSAGE_EVENT: "twitter.directMessage",
    C.TWITTER_STATUS: "twitter.status",
    C.INSTAGRAM: "instagram",
    C.INSTAGRAM_COMMENT: "instagram.comment",
    C.WHATSAPP: "whatsapp",
    C.WHATSAPP_MESSAGE: "whatsapp.message",
}

_ICONS: dict[ChannelType, str] = {}
for _family, _icon in zip(
    CHANNEL_FAMILIES, ("mobile-application", "facebook", "twitter", "instagram", "whatsapp")
):
    for _channel in _family:
        _ICONS[_channel] = _icon


@dataclass(frozen=True)
class ChannelOption:
    """Entry of the hierarchical channel type dropdown."""

    value: ChannelType
    parent: ChannelType | None
    icon: str

    @property
    def is_parent(self) -> bool:
        return self.parent is None


def parse_channel(value: str) -> ChannelType:
    """Parse a stored channel value.

    Raises:
        CatalogMismatchError: value is not a known channel type
    """
    try:
        return ChannelType(value)
    except ValueError as e:
        raise CatalogMismatchError(
            f"Unknown channel type value: {value!r}",
            details={"value": value},
            cause=e,
        ) from e


def channel_family(value: str) -> tuple[ChannelType, ...]:
    channel = parse_channel(value)
    for family in CHANNEL_FAMILIES:
        if channel in family:
            return family
    raise CatalogMismatchError(f"Channel type without family: {value!r}")


def channel_options() -> tuple[ChannelOption, ...]:
    """Channel dropdown entries, parents followed by their children."""
    options: list[ChannelOption] = []
    for family in CHANNEL_FAMILIES:
        parent = family[0]
        options.append(ChannelOption(value=parent, parent=None, icon=_ICONS[parent]))
        options.extend(
            ChannelOption(value=child, parent=parent, icon=_ICONS[child]) for child in family[1:]
        )
    return tuple(options)


def channel_icon(value: str) -> str:
    return _ICONS[parse_channel(value)]


def channel_label_id(value: str, *, with_social_prefix: bool = False) -> str:
    """Message id of a channel label.

    Social sub-channels get a family prefix ("Facebook Feed") when shown
    outside the dropdown hierarchy, e.g. in the rule list.

    Raises:
        CatalogMismatchError: value is not a known channel type
    """
    channel = parse_channel(value)
    message_id = f"{DETAIL}.form.value.{_LABEL_SUFFIX[channel]}"
    if with_social_prefix and channel in SOCIAL_CHANNELS and channel not in PARENT_CHANNELS:
        message_id += "WithPrefix"
    return message_id


def channel_label(value: str, formatter: MessageFormatter, *, with_social_prefix: bool = False) -> str:
    return formatter.format(channel_label_id(value, with_social_prefix=with_social_prefix))


def channels_for_bot(bot_type: BotType | None) -> tuple[ChannelType, ...]:
    """Channels a bot subtype can serve; every channel when not a known bot."""
    if bot_type is None:
        return ALL_CHANNELS
    return BOT_CHANNELS[bot_type]
