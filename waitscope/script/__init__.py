"""YAML check scripts: schema, loader and runner."""
