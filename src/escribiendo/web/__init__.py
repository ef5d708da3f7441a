"""Web API for escribiendo."""
