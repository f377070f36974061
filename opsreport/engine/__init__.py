"""OpsReport engine — configuration, errors, logging, health and runtime wiring."""
