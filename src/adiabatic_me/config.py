"""Logging configuration and numerical defaults.

Importing the package runs :func:`setup_logging` once, so library
diagnostics (dense fallbacks, level truncation, solver progress) are routed
through the standard ``logging`` hierarchy under ``adiabatic_me``.
"""

from __future__ import annotations

import logging
import os

# ARPACK defaults for sparse eigen-decomposition
EIG_TOL = 1e-8
EIG_MAXITER = 3000
EIG_NCV = 20

LOG_LEVEL_ENV = "ADIABATIC_ME_LOG_LEVEL"


def setup_logging() -> None:
    """Configure logging based on environment variables.

    Control log level via the ``ADIABATIC_ME_LOG_LEVEL`` environment variable.

    Examples
    --------
    Default (WARNING level), only fallbacks and truncations are reported::

        python run_anneal.py

    Debug mode, every eigen-solve is logged::

        ADIABATIC_ME_LOG_LEVEL=DEBUG python run_anneal.py
    """
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)

    logging.basicConfig(
        level=level,
        format="%(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on import
setup_logging()
