"""Report assembly: planning, rendering and serialisation."""
