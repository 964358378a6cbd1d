"""Enforcement notification integrations."""

from dadcontrol.notifiers.slack import SlackConfig, SlackNotifier

__all__ = ["SlackConfig", "SlackNotifier"]
