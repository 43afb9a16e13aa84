"""
Outbound messaging channels

Usage:
    channel = get_channel("email", GhlClient(settings))
    contact = await channel.resolve_contact(channel.destination(record), record.ghl_contact_id)
"""
from daycare_messaging.domain.services.channels.ghl_client import DispatchResult, GhlClient
from daycare_messaging.domain.services.channels.base_channel import ContactRef, RetryableChannel
from daycare_messaging.domain.services.channels.email_channel import EmailChannel
from daycare_messaging.domain.services.channels.whatsapp_channel import WhatsAppChannel

_CHANNELS: dict[str, type[RetryableChannel]] = {
    EmailChannel.name: EmailChannel,
    WhatsAppChannel.name: WhatsAppChannel,
}


def get_channel(name: str, client: GhlClient) -> RetryableChannel:
    """Build a channel by name ("email" or "whatsapp")"""
    try:
        channel_cls = _CHANNELS[name]
    except KeyError:
        raise ValueError(
            f"Unknown channel '{name}'. Valid options: {', '.join(sorted(_CHANNELS))}"
        ) from None
    return channel_cls(client)


__all__ = [
    "ContactRef",
    "DispatchResult",
    "EmailChannel",
    "GhlClient",
    "RetryableChannel",
    "WhatsAppChannel",
    "get_channel",
]
