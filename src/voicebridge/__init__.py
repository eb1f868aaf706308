"""voicebridge: phone verification and carrier-routed voice calling."""

__version__ = "0.1.0"
