"""Core runtime for projconf: caches, pipeline, stages, handlers and loader."""
