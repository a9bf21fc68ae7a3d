"""HTTP listener serving the exporter's metrics page."""
