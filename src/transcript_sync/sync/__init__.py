"""Session discovery, layout policy and the push/diff engine."""
