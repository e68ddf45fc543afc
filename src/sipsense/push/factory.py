"""Pick the push channel for this run from configuration."""

import logging

from sipsense.config import SipSenseConfig
from sipsense.push.base import NullPushChannel, PushChannel
from sipsense.push.desktop import DesktopPushChannel
from sipsense.push.ntfy import NtfyPushChannel

logger = logging.getLogger(__name__)


def build_push_channel(config: SipSenseConfig) -> PushChannel:
    """Build the configured channel, or a NullPushChannel when push can't work.

    Args:
        config: Loaded settings.

    Returns:
        A channel whose `available` flag is fixed for the process lifetime.
    """
    if not config.push_enabled or config.push_backend == "none":
        logger.info("Push notifications disabled")
        return NullPushChannel()

    if config.push_backend == "ntfy":
        channel: PushChannel = NtfyPushChannel(
            server=config.ntfy_server,
            topic=config.ntfy_topic,
            timeout=config.push_timeout,
        )
    elif config.push_backend == "desktop":
        channel = DesktopPushChannel(timeout=config.push_timeout)
    else:
        logger.warning("Unknown push backend %r, push disabled", config.push_backend)
        return NullPushChannel()

    if not channel.available:
        logger.warning("Push backend %s not available, push disabled", channel.name)
        return NullPushChannel()

    logger.info("Push backend: %s", channel.name)
    return channel
