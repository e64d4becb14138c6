"""Part planning, throttling, progress and the transfer orchestrator."""
