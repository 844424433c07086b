"""Local agent implementations for tests and demos."""
