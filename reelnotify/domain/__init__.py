"""Domain layer: entities, collaborator ports and errors."""
