"""Tests for adiabatic_me package initialization."""

import logging

import pytest


class TestPackageImports:
    """Tests for package-level imports."""

    def test_version_defined(self):
        """Package should have __version__."""
        import adiabatic_me
        assert hasattr(adiabatic_me, "__version__")
        assert isinstance(adiabatic_me.__version__, str)

    def test_operator_factories_exported(self):
        """Operator factories should be exported."""
        from adiabatic_me import build_ame_operator, build_trajectory_operator

        assert callable(build_ame_operator)
        assert callable(build_trajectory_operator)

    def test_error_hierarchy(self):
        """Kernel errors should share a base class and keep builtin semantics."""
        from adiabatic_me import AMEError, ConvergenceError, DimensionMismatchError

        assert issubclass(ConvergenceError, AMEError)
        assert issubclass(ConvergenceError, RuntimeError)
        assert issubclass(DimensionMismatchError, ValueError)

    def test_all_exports_defined(self):
        """All items in __all__ should be defined."""
        import adiabatic_me

        for name in adiabatic_me.__all__:
            assert hasattr(adiabatic_me, name)


class TestLoggingSetup:
    """Tests for logging configuration and solver defaults."""

    def test_level_from_environment(self, monkeypatch):
        """setup_logging should honour ADIABATIC_ME_LOG_LEVEL."""
        from adiabatic_me import config

        root = logging.getLogger()
        old_handlers, old_level = root.handlers[:], root.level
        root.handlers = []
        monkeypatch.setenv(config.LOG_LEVEL_ENV, "debug")
        try:
            config.setup_logging()
            assert root.level == logging.DEBUG
        finally:
            root.handlers = old_handlers
            root.setLevel(old_level)

    def test_solver_defaults(self):
        """ARPACK defaults are exposed in config."""
        from adiabatic_me import config

        assert config.EIG_TOL == pytest.approx(1e-8)
        assert config.EIG_MAXITER == 3000
        assert config.EIG_NCV == 20
