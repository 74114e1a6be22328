"""Meta Messenger webhook receiver: signature checks, event parsing, dual persistence."""

__version__ = "0.1.0"
