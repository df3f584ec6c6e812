"""jobrelay: relay relevant job posts from Telegram channels to one chat."""

__version__ = "0.1.0"
