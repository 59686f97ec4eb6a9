"""TurnoLibre: court-booking marketplace backend."""
