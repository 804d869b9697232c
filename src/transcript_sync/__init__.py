"""transcript-sync - back up and synchronize AI assistant transcripts."""

__version__ = "0.4.0"
