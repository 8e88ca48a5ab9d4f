"""Services for device token storage, push delivery, and notification content."""
