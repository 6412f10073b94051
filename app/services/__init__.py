"""Service layer: catalog client, room store and the room coordinator."""
