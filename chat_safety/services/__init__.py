"""Safety services: evaluation, interception, audit and metrics."""
