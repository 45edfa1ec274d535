"""Mystery Maker: murder-mystery party packages from a chat with an LLM."""
