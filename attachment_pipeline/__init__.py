"""Attachment Pipeline — optimize and store expense attachments."""

__version__ = "1.0.0"
