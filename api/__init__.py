"""HTTP API package for the contract family engine."""
