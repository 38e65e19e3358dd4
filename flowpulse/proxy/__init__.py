"""Server-side relay between browser clients and the AI gateway."""
