"""Infrastructure layer: configuration, settings, logging and audit."""
