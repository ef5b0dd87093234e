"""Task marketplace backend: tasks, bids and owner dashboards."""
