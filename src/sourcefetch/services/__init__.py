"""Service layer: configuration management and the acquisition facade."""
