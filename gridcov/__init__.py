"""gridcov: lazy grid values matrices and derived-field plugins."""
import logging

# silent unless the application configures logging (see gridcov.logging_config)
logging.getLogger(__name__).addHandler(logging.NullHandler())
