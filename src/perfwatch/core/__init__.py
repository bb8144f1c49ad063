"""Core domain: models, ports, aggregation and alerting."""
