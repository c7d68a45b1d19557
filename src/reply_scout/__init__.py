"""Reply Scout - chat triage bot that DMs you messages worth a reply."""

__version__ = "0.1.0"
