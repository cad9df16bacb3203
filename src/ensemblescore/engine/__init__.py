"""Engine façade: per-category state, orchestrator, results, and reports."""
