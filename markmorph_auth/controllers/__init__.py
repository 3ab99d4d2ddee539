"""Request controllers for the authentication API."""
