"""Share one file over HTTP through a single-use, self-expiring URL."""
