"""Tests for channel → topic resolution."""

from shared.catalogue import Category
from shared.channels import Channel, channel_for_category, topic_for


class TestTopicFor:
    def test_default_topics(self):
        assert topic_for(Channel.PREMIUM) == "PR2/A7/cantidades/caro"
        assert topic_for(Channel.STANDARD) == "PR2/A7/cantidades/barato"
        assert topic_for(Channel.ROBOT_COMMAND) == "PR2/A7/db"
        assert topic_for(Channel.ROBOT_STATUS) == "PR2/A7/robodk"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TOPIC_ROBOT_STATUS", "cell/robot/status")
        assert topic_for(Channel.ROBOT_STATUS) == "cell/robot/status"


class TestChannelForCategory:
    def test_each_category_has_its_channel(self):
        assert channel_for_category(Category.PREMIUM) == Channel.PREMIUM
        assert channel_for_category(Category.STANDARD) == Channel.STANDARD
