"""SQL text generation for single-entity statements."""
