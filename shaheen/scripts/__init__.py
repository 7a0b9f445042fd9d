"""Console entry points; one linear task per script."""
