"""PINE protocol handling: opcode catalog, frame layouts and the answer codec."""
