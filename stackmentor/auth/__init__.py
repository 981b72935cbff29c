"""Password hashing and access token handling."""
