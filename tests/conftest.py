import jax

# Reference comparisons against dense solves need double precision.
jax.config.update("jax_enable_x64", True)
