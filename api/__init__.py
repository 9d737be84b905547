"""HTTP routes that are not tied to the Spotify connector."""
