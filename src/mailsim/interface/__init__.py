"""Command line interface for mailsim."""
