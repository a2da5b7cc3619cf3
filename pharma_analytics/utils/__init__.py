"""Query building utilities for analytics repositories."""
