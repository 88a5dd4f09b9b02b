"""Features module for neo-federation."""
