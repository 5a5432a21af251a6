"""Files copied into the serve control directory."""
