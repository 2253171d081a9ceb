"""Templates bundled with qlharvest."""
