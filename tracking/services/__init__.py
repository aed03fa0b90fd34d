"""Fix filtering, metric accumulation, lifecycle and orchestration services."""
