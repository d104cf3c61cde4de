"""log_viewer — live log stream reconciliation engine."""
