"""Actor/inventory state and snapshot persistence."""
