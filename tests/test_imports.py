"""
Verify the package import structure

Every subpackage must import cleanly and expose what its __all__ declares.
"""

import importlib

import pytest

MODULES = [
    ("psych_engine", "Package root"),
    ("psych_engine.core", "Records, configuration and errors"),
    ("psych_engine.processing", "State derivation"),
    ("psych_engine.detection", "Emotional state classifier"),
    ("psych_engine.scoring", "Test scoring"),
    ("psych_engine.storage", "Repository"),
    ("psych_engine.session", "Session lifecycle"),
    ("psych_engine.analytics", "Analytics"),
    ("psych_engine.communication", "Serialization"),
    ("psych_engine.simulation", "Synthetic data"),
    ("psych_engine.utils", "Utilities"),
    ("psych_engine.cli", "Command line"),
]


@pytest.mark.parametrize("module_name, description", MODULES)
def test_import(module_name, description):
    module = importlib.import_module(module_name)
    for name in getattr(module, "__all__", []):
        assert hasattr(module, name), f"{description}: {module_name} lacks {name}"


def test_version():
    import psych_engine
    assert psych_engine.__version__ == "1.0.0"
