"""Grammar model, parser, validator and error types."""
