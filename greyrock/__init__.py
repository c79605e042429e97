"""Grey rock / yellow rock message analysis across several LLM providers."""
