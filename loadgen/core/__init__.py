"""Gate, router, batch builder, executor and outcome scoring."""
