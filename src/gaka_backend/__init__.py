"""GaKa voice assistant backend."""
