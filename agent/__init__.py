"""On-target load session agent."""
