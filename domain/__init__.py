"""Domain layer: errors, events and the file sharing model."""
