"""Broker channels shared by the ordering and fulfillment contexts.

Each channel maps to one broker topic. Defaults match the topics the
dispensers and the packing robot are flashed with; every topic can be
overridden through an environment variable.
"""

import os
from enum import Enum

from shared.catalogue import Category


class Channel(Enum):
    PREMIUM = "premium"
    STANDARD = "standard"
    ROBOT_COMMAND = "robot_command"
    ROBOT_STATUS = "robot_status"


_DEFAULT_TOPICS = {
    Channel.PREMIUM: "PR2/A7/cantidades/caro",
    Channel.STANDARD: "PR2/A7/cantidades/barato",
    Channel.ROBOT_COMMAND: "PR2/A7/db",
    Channel.ROBOT_STATUS: "PR2/A7/robodk",
}

_TOPIC_ENV_VARS = {
    Channel.PREMIUM: "TOPIC_PREMIUM",
    Channel.STANDARD: "TOPIC_STANDARD",
    Channel.ROBOT_COMMAND: "TOPIC_ROBOT_COMMAND",
    Channel.ROBOT_STATUS: "TOPIC_ROBOT_STATUS",
}

_CATEGORY_CHANNELS = {
    Category.PREMIUM: Channel.PREMIUM,
    Category.STANDARD: Channel.STANDARD,
}


def topic_for(channel: Channel) -> str:
    """Return the broker topic for a channel, honouring environment overrides."""
    return os.environ.get(_TOPIC_ENV_VARS[channel], _DEFAULT_TOPICS[channel])


def channel_for_category(category: Category) -> Channel:
    return _CATEGORY_CHANNELS[category]
