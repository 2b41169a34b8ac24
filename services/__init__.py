"""Business services for the parking booking assistant."""
