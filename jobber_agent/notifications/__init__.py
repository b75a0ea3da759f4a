# Package
from jobber_agent.notifications.slack import SlackNotifier, build_notifier
