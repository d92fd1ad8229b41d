"""Lorekeeper: world-building chat backed by a knowledge graph."""
