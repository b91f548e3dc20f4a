"""Fleet stress manager - plans, dispatches and collects stress runs."""
