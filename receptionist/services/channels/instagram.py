from receptionist.services.channels.base import Channel
from receptionist.services.channels.messenger import MessengerAdapter, MessengerCredentials


class InstagramCredentials(MessengerCredentials):
    pass


class InstagramAdapter(MessengerAdapter):
    """Instagram DMs share the Messenger envelope and send API."""

    channel = Channel.INSTAGRAM
    credentials_model = InstagramCredentials
    webhook_object = "instagram"
