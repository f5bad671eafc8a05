"""HTTP surface: Flask blueprints and error handlers."""
