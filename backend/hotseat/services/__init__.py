"""Services behind the HTTP and socket handlers: storage, notifications, games."""
