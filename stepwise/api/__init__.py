"""Fixed-path endpoints: health check and informational pages."""
