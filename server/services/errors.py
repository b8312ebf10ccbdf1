"""Error taxonomy shared by the chat store, ingest and HTTP/socket layers."""


class ChatError(Exception):
    """Base class for chat failures. `public_message` is safe to show users."""

    public_message = 'Server error'

    def __init__(self, message=None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(ChatError):
    public_message = 'Text is required'


class NotFound(ChatError):
    public_message = 'Message not found'


class StoreError(ChatError):
    """The database refused or failed a write; nothing was applied."""

    public_message = 'Failed to send message'
