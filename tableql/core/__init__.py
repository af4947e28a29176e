"""Schema-driven building blocks: registry, scalars, compilers, type generation, remapping."""
