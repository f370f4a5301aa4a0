"""JSON serving surface for games and floor predictions."""
