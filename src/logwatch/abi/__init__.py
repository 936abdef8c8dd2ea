"""ABI helpers: signature hashing, topic encoding, log decoding."""
