"""Core services: configuration, context, logging and interrupt handling."""
