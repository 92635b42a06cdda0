"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import acctsolver


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        self.assertTrue(callable(acctsolver.load_config))
        self.assertTrue(callable(acctsolver.ensure_config_dir))
        self.assertIsNotNone(acctsolver.HomeworkChat)
        self.assertIsNotNone(acctsolver.SessionStore)
        self.assertIsNotNone(acctsolver.OllamaBackend)
        self.assertIsNotNone(acctsolver.InferenceBackend)
        self.assertIsNotNone(acctsolver.AcctSolverError)
        self.assertIsNotNone(acctsolver.BackendError)
        self.assertIsNotNone(acctsolver.PersistenceError)
        self.assertEqual(acctsolver.Role.USER.value, "user")

    def test_all_names_resolve(self) -> None:
        for name in acctsolver.__all__:
            self.assertIsNotNone(getattr(acctsolver, name))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(acctsolver, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
