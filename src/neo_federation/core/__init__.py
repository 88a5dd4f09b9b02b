"""Core building blocks shared across neo-federation features."""
