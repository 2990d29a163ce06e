"""Client configuration models and loaders."""
