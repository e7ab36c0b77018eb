"""Change-event vocabulary shared by transports and reducers."""
